# datawaves/notifications/email_templates.py
from datetime import datetime

from markupsafe import escape

BRAND = "DataWaves"

_STYLE = """
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: {accent}; color: white; padding: 20px; text-align: center; }}
                .content {{ padding: 30px; background: #f8f9fa; }}
                .details {{ background: white; padding: 20px; border-radius: 4px; margin: 20px 0; }}
                .footer {{ margin-top: 30px; padding-top: 20px; border-top: 1px solid #dee2e6; color: #6c757d; }}
            </style>
"""


def _money(amount):
    return f"GHC {float(amount):.2f}"


def _page(title, accent, body):
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>{escape(title)}</title>
            {_STYLE.format(accent=accent)}
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>{BRAND}</h1>
                    <p>{escape(title)}</p>
                </div>
                <div class="content">
                    {body}
                </div>
                <div class="footer">
                    <p>Thank you for choosing {BRAND}!</p>
                    <p>&copy; {datetime.now().year} {BRAND}. This is an automated message, please do not reply.</p>
                </div>
            </div>
        </body>
        </html>
        """


class EmailTemplates:
    """Email template definitions"""

    @staticmethod
    def purchase_confirmation(transaction, user, plan):
        subject = f"{BRAND} - Payment Confirmation"
        body = f"""
                    <h2 style="color: #28a745;">Payment Successful!</h2>
                    <p>Dear {escape(user.full_name)},</p>
                    <p>Your payment for the data bundle has been processed successfully.</p>
                    <div class="details">
                        <h3>Transaction Details</h3>
                        <p><strong>Transaction ID:</strong> {escape(transaction.payment_reference)}</p>
                        <p><strong>Network:</strong> {escape(transaction.network.upper())}</p>
                        <p><strong>Data Plan:</strong> {escape(plan.size)}GB</p>
                        <p><strong>Phone Number:</strong> {escape(transaction.phone_number)}</p>
                        <p><strong>Amount:</strong> {_money(transaction.amount)}</p>
                    </div>
                    <p>Your data bundle has been delivered to {escape(transaction.phone_number)}.</p>
        """
        return subject, _page("Mobile Data Purchase Confirmation", "#007bff", body)

    @staticmethod
    def failure_notice(transaction, user, reason, support_email):
        subject = f"{BRAND} - Transaction Failed"
        name = escape(user.full_name) if user is not None else "Customer"
        body = f"""
                    <h2 style="color: #dc3545;">Transaction Failed</h2>
                    <p>Dear {name},</p>
                    <p>We're sorry, but your purchase of a data bundle could not be completed.</p>
                    <div class="details">
                        <h3>Transaction Details</h3>
                        <p><strong>Transaction ID:</strong> {escape(transaction.payment_reference)}</p>
                        <p><strong>Network:</strong> {escape(transaction.network.upper())}</p>
                        <p><strong>Amount:</strong> {_money(transaction.amount)}</p>
                        <p><strong>Error:</strong> {escape(reason)}</p>
                    </div>
                    <p>Please try again or contact our support team at {escape(support_email)}.</p>
        """
        return subject, _page("Transaction Failed", "#dc3545", body)

    @staticmethod
    def admin_alert(subject, details):
        rows = "".join(
            f"<tr><td><strong>{escape(key)}</strong></td><td>{escape(value)}</td></tr>"
            for key, value in (details or {}).items()
        )
        body = f"""
                    <h2 style="color: #dc3545;">{escape(subject)}</h2>
                    <table style="width: 100%; border-collapse: collapse;">{rows}</table>
                    <p><small>Time: {datetime.utcnow().isoformat()}Z</small></p>
        """
        return f"{BRAND} Admin Alert - {subject}", _page("Admin Alert", "#343a40", body)


class SmsTemplates:
    @staticmethod
    def purchase_confirmation(transaction, user, plan):
        return (
            f"{BRAND} Payment Confirmation\n\n"
            f"Dear {user.full_name},\n"
            f"Your payment of {_money(transaction.amount)} for {plan.size}GB "
            f"{transaction.network.upper()} data has been processed successfully.\n\n"
            f"Transaction ID: {transaction.payment_reference}\n\n"
            f"Thank you for choosing {BRAND}!"
        )

    @staticmethod
    def failure_notice(transaction, user, reason, support_email):
        name = user.full_name if user is not None else "Customer"
        return (
            f"{BRAND} - Transaction Failed\n\n"
            f"Dear {name},\n"
            f"Your payment for {transaction.network.upper()} data bundle failed.\n\n"
            f"Transaction ID: {transaction.payment_reference}\n"
            f"Amount: {_money(transaction.amount)}\n"
            f"Error: {reason}\n\n"
            f"Please try again or contact {support_email}"
        )

    @staticmethod
    def admin_alert(subject, details):
        lines = "\n".join(f"{key}: {value}" for key, value in (details or {}).items())
        return f"{BRAND} Admin Alert\n\n{subject}\n\n{lines}"
