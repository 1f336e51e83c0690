import logging
import requests
from fastapi import HTTPException
from storepos.core import config

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def send_email_otp(to_email: str, otp: str):

    if config.EMAIL_DELIVERY == "console":
        logger.info("OTP for %s is %s (console delivery)", to_email, otp)
        return

    if not config.SENDGRID_API_KEY or not config.SENDGRID_FROM_EMAIL:
        raise HTTPException(status_code=500, detail="SendGrid env missing")

    payload = {
        "personalizations": [
            {
                "to": [{"email": to_email}],
                "subject": "OTP Verification"
            }
        ],
        "from": {"email": config.SENDGRID_FROM_EMAIL, "name": "Auth Service"},
        "content": [
            {
                "type": "text/plain",
                "value": (
                    f"Your OTP is: {otp}\n"
                    f"This OTP expires in {config.OTP_EXPIRE_MINUTES} minutes."
                )
            },
            {
                "type": "text/html",
                "value": f"""
                <div style="font-family:Arial,sans-serif;padding:16px">
                  <h2>OTP Verification</h2>
                  <p>Your OTP is:</p>
                  <div style="font-size:28px;font-weight:800;letter-spacing:4px">
                    {otp}
                  </div>
                  <p>This OTP expires in <b>{config.OTP_EXPIRE_MINUTES} minutes</b>.</p>
                </div>
                """
            }
        ]
    }

    headers = {
        "Authorization": f"Bearer {config.SENDGRID_API_KEY}",
        "Content-Type": "application/json"
    }

    try:
        r = requests.post(SENDGRID_URL, headers=headers, json=payload, timeout=10)
    except requests.RequestException as e:
        logger.exception("SendGrid request failed for %s", to_email)
        raise HTTPException(status_code=502, detail=f"Email delivery failed: {e}")

    if r.status_code not in [200, 202]:
        logger.error("SendGrid rejected OTP mail for %s: %s", to_email, r.text)
        raise HTTPException(status_code=502, detail=f"SendGrid failed: {r.text}")

    logger.info("OTP email sent to %s", to_email)
