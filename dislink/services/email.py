"""Email service using Resend for redemption code delivery."""

from __future__ import annotations

import asyncio
import html
from urllib.parse import quote

import resend

from dislink import config

# Initialize Resend with API key
resend.api_key = config.settings.RESEND_API_KEY


async def send_redemption_code(email: str, redemption_code: str, owner_name: str | None = None) -> None:
    """
    Email a redemption code to someone who scanned a profile without an account.

    Args:
        email: Recipient email address
        redemption_code: Code to enter (or follow) at sign-up
        owner_name: Name of the profile that was scanned, if known

    Raises:
        Exception: If email sending fails
    """
    register_url = f"{config.settings.APP_URL}/app/register?redeem={quote(redemption_code, safe='')}"
    who = owner_name or "your new contact"
    # Profile names are user-controlled; only escaped values go into the HTML body
    safe_who = html.escape(who)
    safe_url = html.escape(register_url)
    safe_code = html.escape(redemption_code)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>Finish connecting on Dislink</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
                line-height: 1.6;
                color: #333;
                background-color: #f5f5f5;
                margin: 0;
                padding: 0;
            }}
            .container {{
                max-width: 600px;
                margin: 40px auto;
                background-color: #ffffff;
                border-radius: 8px;
                overflow: hidden;
            }}
            .content {{
                padding: 32px 24px;
            }}
            .button {{
                display: inline-block;
                padding: 14px 32px;
                margin: 24px 0;
                background-color: #4f46e5;
                color: #ffffff;
                text-decoration: none;
                border-radius: 6px;
                font-weight: 600;
            }}
            .code {{
                display: block;
                padding: 12px;
                background-color: #f5f5f5;
                border-radius: 4px;
                font-family: monospace;
                word-break: break-all;
            }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="content">
                <p>Hello,</p>
                <p>You scanned {safe_who}'s Dislink code. Create your account to finish connecting.</p>
                <a href="{safe_url}" class="button">Create my account</a>
                <p>Or enter this code when you sign up:</p>
                <code class="code">{safe_code}</code>
                <p>If you didn't scan a Dislink code, you can safely ignore this email.</p>
            </div>
        </div>
    </body>
    </html>
    """

    # Plain text fallback
    text_content = f"""
    Finish connecting on Dislink

    You scanned {who}'s Dislink code. Create your account to finish connecting:
    {register_url}

    Or enter this code when you sign up: {redemption_code}

    If you didn't scan a Dislink code, you can safely ignore this email.
    """

    params = {
        "from": config.settings.EMAIL_FROM,
        "to": [email],
        "subject": f"Connect with {who} on Dislink",
        "html": html_content,
        "text": text_content,
    }

    # The Resend SDK is synchronous
    await asyncio.to_thread(resend.Emails.send, params)
