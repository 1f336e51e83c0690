"""HTTP client shared by the admin, POS and mobile frontends.

Protected calls carry `Authorization: Bearer <access>` from the token store.
A 401 triggers at most one refresh and one replay of that request. Refreshes
are single-flight: a request whose token was already replaced by another
request's refresh replays with the new pair instead of refreshing again.
"""
import logging
import threading
from typing import Callable, Optional

import requests

from storepos.client.errors import ApiError, NetworkError, NotAuthenticated, SessionExpired
from storepos.client.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh-token"


def _page_params(page: int, limit: int, search: Optional[str] = None) -> dict:
    params = {"page": page, "limit": limit}
    if search:
        params["search"] = search
    return params


class ApiClient:
    def __init__(
        self,
        base_url: str,
        store: TokenStore,
        http=None,
        timeout: float = 10,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.on_session_expired = on_session_expired
        self._refresh_lock = threading.Lock()

    # ---------------- transport ----------------
    def _send(self, method, path, token=None, json=None, params=None):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return self.http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError("Unable to reach the server. Please try again.")

    @staticmethod
    def _payload(resp) -> dict:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    def _handle(self, resp) -> dict:
        data = self._payload(resp)
        if resp.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP error! status: {resp.status_code}"
            raise ApiError(resp.status_code, message, data)
        return data

    # ---------------- auth ----------------
    def _expire(self):
        logger.info("Session expired, clearing stored tokens")
        self.store.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()
        raise SessionExpired("Session expired. Please login again.")

    def refresh_tokens(self, stale_access: Optional[str] = None) -> Optional[TokenPair]:
        """Exchange the stored refresh token for a new pair.

        Returns None when the refresh fails. When `stale_access` no longer
        matches the stored access token another caller already refreshed, and
        the stored pair is returned as is.
        """
        with self._refresh_lock:
            current = self.store.get_tokens()
            if current is None:
                return None
            if stale_access is not None and current.access_token != stale_access:
                return current

            try:
                resp = self._send("POST", REFRESH_PATH, json={"refreshToken": current.refresh_token})
            except NetworkError:
                return None
            if resp.status_code != 200:
                logger.info("Token refresh rejected with %s", resp.status_code)
                return None

            data = self._payload(resp)
            try:
                pair = TokenPair.from_dict(data)
            except ValueError:
                logger.warning("Token refresh returned an incomplete pair")
                return None

            self.store.set_tokens(pair)
            logger.info("Access token refreshed")
            return pair

    def request(self, method: str, path: str, *, auth: bool = True, json=None, params=None) -> dict:
        if not auth:
            return self._handle(self._send(method, path, json=json, params=params))

        tokens = self.store.get_tokens()
        if tokens is None:
            raise NotAuthenticated("No access token found. Please login again.")

        resp = self._send(method, path, token=tokens.access_token, json=json, params=params)
        if resp.status_code != 401:
            return self._handle(resp)

        fresh = self.refresh_tokens(stale_access=tokens.access_token)
        if fresh is None:
            self._expire()

        resp = self._send(method, path, token=fresh.access_token, json=json, params=params)
        if resp.status_code == 401:
            self._expire()
        return self._handle(resp)

    def get(self, path, **kw):
        return self.request("GET", path, **kw)

    def post(self, path, **kw):
        return self.request("POST", path, **kw)

    def put(self, path, **kw):
        return self.request("PUT", path, **kw)

    def patch(self, path, **kw):
        return self.request("PATCH", path, **kw)

    def delete(self, path, **kw):
        return self.request("DELETE", path, **kw)

    # ---------------- auth endpoints ----------------
    def generate_otp(self, email: str):
        return self.post("/auth/generate-otp", auth=False, json={"email": email})

    def resend_otp(self, email: str):
        return self.post("/auth/resend-otp", auth=False, json={"email": email})

    def verify_otp(self, email: str, otp: str):
        return self.post("/auth/verify-otp", auth=False, json={"email": email, "otp": otp})

    def logout(self, refresh_token: str):
        return self.post("/auth/logout", auth=False, json={"refreshToken": refresh_token})

    def get_profile(self) -> dict:
        return self.get("/users/me")["user"]

    # ---------------- promo codes ----------------
    def validate_promo(self, code: str) -> dict:
        return self.post("/promos/validate", auth=False, json={"code": code})["data"]["promoCode"]

    def increment_promo(self, code: str) -> dict:
        return self.post("/promos/increment", auth=False, json={"code": code})["data"]["promoCode"]

    def list_promos(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> dict:
        return self.get("/promos", params=_page_params(page, limit, search))["data"]

    def active_promos(self) -> list:
        return self.get("/promos/active")["data"]["promoCodes"]

    def get_promo(self, promo_id: str) -> dict:
        return self.get(f"/promos/{promo_id}")["data"]["promoCode"]

    def create_promo(self, promo: dict) -> dict:
        return self.post("/promos", json=promo)["data"]["promoCode"]

    def update_promo(self, promo_id: str, changes: dict) -> dict:
        return self.put(f"/promos/{promo_id}", json=changes)["data"]["promoCode"]

    def delete_promo(self, promo_id: str):
        return self.delete(f"/promos/{promo_id}")

    # ---------------- users ----------------
    def list_users(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> dict:
        return self.get("/users", params=_page_params(page, limit, search))["data"]

    def get_user(self, user_id: str) -> dict:
        return self.get(f"/users/{user_id}")["user"]

    def update_user(self, user_id: str, changes: dict) -> dict:
        return self.put(f"/users/{user_id}", json=changes)["user"]

    def delete_user(self, user_id: str):
        return self.delete(f"/users/{user_id}")

    # ---------------- catalog ----------------
    def list_products(self, page: int = 1, limit: int = 10, search: Optional[str] = None, **filters) -> dict:
        params = _page_params(page, limit, search)
        params.update({k: v for k, v in filters.items() if v is not None})
        return self.get("/products", params=params)["data"]

    def get_product(self, product_id: str) -> dict:
        return self.get(f"/products/{product_id}")["data"]["product"]

    def create_product(self, product: dict) -> dict:
        return self.post("/products", json=product)["data"]["product"]

    def update_product(self, product_id: str, changes: dict) -> dict:
        return self.put(f"/products/{product_id}", json=changes)["data"]["product"]

    def delete_product(self, product_id: str):
        return self.delete(f"/products/{product_id}")

    def list_brands(self, page: int = 1, limit: int = 100, search: Optional[str] = None) -> dict:
        return self.get("/brands", auth=False, params=_page_params(page, limit, search))["data"]

    def get_brand(self, brand_id: str) -> dict:
        return self.get(f"/brands/{brand_id}", auth=False)["data"]["brand"]

    def create_brand(self, name: str, description: Optional[str] = None) -> dict:
        return self.post("/brands", json={"name": name, "description": description})["data"]["brand"]

    def update_brand(self, brand_id: str, changes: dict) -> dict:
        return self.put(f"/brands/{brand_id}", json=changes)["data"]["brand"]

    def delete_brand(self, brand_id: str):
        return self.delete(f"/brands/{brand_id}")

    def list_categories(self, page: int = 1, limit: int = 100, search: Optional[str] = None) -> dict:
        return self.get("/categories", auth=False, params=_page_params(page, limit, search))["data"]

    def get_category(self, category_id: str) -> dict:
        return self.get(f"/categories/{category_id}", auth=False)["data"]["category"]

    def create_category(self, name: str, description: Optional[str] = None) -> dict:
        return self.post("/categories", json={"name": name, "description": description})["data"]["category"]

    def update_category(self, category_id: str, changes: dict) -> dict:
        return self.put(f"/categories/{category_id}", json=changes)["data"]["category"]

    def delete_category(self, category_id: str):
        return self.delete(f"/categories/{category_id}")

    # ---------------- sales ----------------
    def create_sale(self, items, payment_method: str, promo_code: Optional[str] = None, notes: Optional[str] = None):
        body = {"items": items, "paymentMethod": payment_method}
        if promo_code:
            body["promoCode"] = promo_code
        if notes:
            body["notes"] = notes
        return self.post("/sales", json=body)["data"]["sale"]

    def today_sales(self) -> dict:
        return self.get("/sales/today/summary")["data"]

    def list_sales(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> dict:
        return self.get("/sales", params=_page_params(page, limit, search))["data"]

    def get_sale(self, sale_id: str) -> dict:
        return self.get(f"/sales/{sale_id}")["data"]["sale"]

    # ---------------- analytics ----------------
    def dashboard_stats(self) -> dict:
        return self.get("/analytics/dashboard/stats")["data"]

    def sales_by_cashier(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> list:
        params = {}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        return self.get("/analytics/sales-by-cashier", params=params)["data"]

    def top_products(self, limit: int = 10) -> list:
        return self.get("/analytics/products", params={"limit": limit})["data"]

    # ---------------- notifications ----------------
    def notifications(self, page: int = 1, limit: int = 10) -> dict:
        return self.get("/notifications", params=_page_params(page, limit))["data"]

    def unread_count(self) -> int:
        return self.get("/notifications/unread-count")["data"]["count"]

    def mark_notification_read(self, notification_id: str):
        return self.patch(f"/notifications/{notification_id}/read")

    def mark_all_notifications_read(self):
        return self.patch("/notifications/mark-all-read")

    def delete_notification(self, notification_id: str):
        return self.delete(f"/notifications/{notification_id}")

    def send_test_notification(self, title: Optional[str] = None, message: Optional[str] = None,
                               user_id: Optional[str] = None) -> dict:
        body = {k: v for k, v in {"title": title, "message": message, "userId": user_id}.items() if v is not None}
        return self.post("/notifications/test", json=body)["data"]["notification"]
