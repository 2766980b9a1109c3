from decimal import Decimal
from html import escape
from typing import Dict, Optional

from app.core.config import Settings

# ============================================
# ENROLLMENT CONFIRMATION
# ============================================

ENROLLMENT_HTML = """<div style="font-family: 'Segoe UI', Tahoma, Verdana, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #1D7E99; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
    <h1 style="color: white; margin: 0;">Welcome to {company}!</h1>
    <p style="color: white; margin: 10px 0 0 0;">Your learning journey starts now</p>
  </div>
  <div style="padding: 30px; border: 1px solid #ddd; border-radius: 0 0 10px 10px;">
    <p>Hi {first_name},</p>
    <p>Thank you for enrolling in <strong>{course_title}</strong>. We're excited to have you on board!</p>
    <h3>Enrollment Details</h3>
    <table style="width: 100%; border-collapse: collapse;">
      {rows}
    </table>
    <p>Your class links and schedule are available on your dashboard.</p>
    <p>Need help? Email us at <a href="mailto:{support_email}">{support_email}</a>.</p>
    <p>Best,<br>{company} Team</p>
  </div>
</div>"""

ENROLLMENT_TEXT = """Hi {first_name},

Thank you for enrolling in {course_title}. We're excited to have you on board!

Your class links and schedule are available on your dashboard: {website_url}

Need help? Email us at {support_email}

Best,
{company} Team

---
ENROLLMENT DETAILS:
{details}

This email was sent to {to_email} regarding your course enrollment.
"""

# ============================================
# COUPON NOTIFICATION
# ============================================

COUPON_HTML = """<div style="font-family: 'Segoe UI', Tahoma, Verdana, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #1D7E99;">A coupon from {company}</h1>
  <p>Hi {to_name},</p>
  <p>Here is your exclusive code for <strong>{discount_text}</strong>:</p>
  <p style="font-size: 28px; font-family: monospace; letter-spacing: 3px; text-align: center;">{coupon_code}</p>
  <p>{scope_text}</p>
  {extra_html}
  <ol>
    <li>Visit <a href="{website_url}">{website_url}</a></li>
    <li>Select your course and click "Enroll Now"</li>
    <li>Enter the code <strong>{coupon_code}</strong> at checkout</li>
  </ol>
  <p>Need help? Email us at {support_email}</p>
  <p>Best regards,<br>The {company} Team</p>
</div>"""

COUPON_TEXT = """Hi {to_name},

Here is your exclusive code for {discount_text}: {coupon_code}

{scope_text}
{extra_text}
HOW TO REDEEM:
1. Visit: {website_url}
2. Select your course and click "Enroll Now"
3. At checkout, enter coupon code: {coupon_code}

Need help? Email us at {support_email}

Best regards,
The {company} Team
{website_url}
"""


def first_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        return "Student"
    return name.strip().split(" ")[0]


def _money(value) -> str:
    return f"${Decimal(str(value or 0)):.2f}"


def enrollment_details(data: Dict) -> Dict[str, str]:
    details = {
        "Course": data.get("course_title") or data.get("course_id", ""),
        "Batch": data.get("batch_label") or f"Batch {data.get('batch_number', '')}",
        "Amount Paid": _money(data.get("amount")),
        "Payment Method": data.get("payment_method") or "PayPal",
        "Transaction Status": data.get("transaction_status") or "Completed",
        "Payment ID": data.get("payment_id") or "-",
        "Order ID": data.get("order_id") or "-",
        "Enrollment Date": data.get("enrollment_date") or "",
    }
    if data.get("batch_dates"):
        details["Schedule"] = data["batch_dates"]
    if data.get("payer_name") and data.get("payer_name") != data.get("user_name"):
        details["Payer Name"] = data["payer_name"]
    if data.get("payer_email") and data.get("payer_email") != data.get("user_email"):
        details["Payment Email"] = data["payer_email"]
    if data.get("funding_source"):
        details["Funding Source"] = data["funding_source"]
    return details


def render_enrollment_email(data: Dict, settings: Settings) -> Dict[str, str]:
    """Subject, HTML and text bodies for an enrollment confirmation."""
    course_title = data.get("course_title") or data.get("course_id", "")
    details = enrollment_details(data)
    rows = "\n      ".join(
        f'<tr><td style="padding: 8px 0; font-weight: bold;">{escape(label)}:</td>'
        f'<td style="padding: 8px 0;">{escape(str(value))}</td></tr>'
        for label, value in details.items()
    )
    common = {
        "company": settings.company_name,
        "first_name": first_name(data.get("user_name")),
        "support_email": settings.support_email,
        "website_url": settings.website_url,
    }

    return {
        "subject": f"Welcome to {course_title} - your learning journey starts now",
        "html": ENROLLMENT_HTML.format(
            course_title=escape(course_title),
            rows=rows,
            **{k: escape(v) for k, v in common.items()},
        ),
        "text": ENROLLMENT_TEXT.format(
            course_title=course_title,
            details="\n".join(f"- {k}: {v}" for k, v in details.items()),
            to_email=data.get("user_email") or "",
            **common,
        ),
    }


def coupon_subject(data: Dict, settings: Settings) -> str:
    code = data["coupon_code"]
    value = Decimal(str(data["discount_value"]))
    is_percentage = data["discount_type"] == "percentage"
    course_title = data.get("course_title")

    if is_percentage and value == 100:
        if course_title:
            return f"Free Access: {course_title} - Use Code {code}"
        return f"Free Course Access - Your Code: {code}"

    amount = f"{value.normalize():f}%" if is_percentage else _money(value)
    target = course_title or f"{settings.company_name} Courses"
    return f"{amount} Off {target} - Code {code}"


def render_coupon_email(data: Dict, settings: Settings) -> Dict[str, str]:
    value = Decimal(str(data["discount_value"]))
    if data["discount_type"] == "percentage":
        discount_text = f"{value.normalize():f}% off"
    else:
        discount_text = f"{_money(value)} off"

    if data.get("course_title"):
        scope_text = f"This coupon is for: {data['course_title']}"
    else:
        scope_text = "This coupon can be used for any course"

    extras = []
    if data.get("valid_until"):
        extras.append(f"Valid until: {data['valid_until']}")
    if data.get("min_order_amount"):
        extras.append(f"Minimum order: {_money(data['min_order_amount'])}")
    if data.get("message"):
        extras.append(f'Personal message: "{data["message"]}"')

    common = {
        "company": settings.company_name,
        "to_name": data.get("recipient_name") or "Student",
        "coupon_code": data["coupon_code"],
        "discount_text": discount_text,
        "scope_text": scope_text,
        "support_email": settings.support_email,
        "website_url": settings.website_url,
    }

    return {
        "subject": coupon_subject(data, settings),
        "html": COUPON_HTML.format(
            extra_html="".join(f"<p>{escape(line)}</p>" for line in extras),
            **{k: escape(v) for k, v in common.items()},
        ),
        "text": COUPON_TEXT.format(
            extra_text="".join(f"{line}\n" for line in extras),
            **common,
        ),
    }


# ============================================
# RECEIPT
# ============================================

RECEIPT_HTML = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Payment Receipt - {receipt_number}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 40px; }}
    .receipt-container {{ max-width: 600px; margin: 0 auto; }}
    table {{ width: 100%; border-collapse: collapse; }}
    td, th {{ padding: 8px; border-bottom: 1px solid #ddd; text-align: left; }}
    .total {{ font-weight: bold; }}
  </style>
</head>
<body>
  <div class="receipt-container">
    <h1>{company}</h1>
    <p>Payment Receipt</p>
    <p><strong>Receipt Number:</strong> {receipt_number}<br><strong>Date:</strong> {date}</p>
    <p><strong>Customer:</strong> {customer_name}<br>{customer_email}</p>
    <table>
      <tr><th>Description</th><th>Qty</th><th>Total</th></tr>
      <tr><td>Course Enrollment: {course_title} (Batch {batch_number})</td><td>1</td><td>{amount}</td></tr>
      <tr class="total"><td colspan="2">Total</td><td>{amount}</td></tr>
    </table>
    <p><strong>Payment Method:</strong> {payment_method}<br>
       <strong>Transaction ID:</strong> {payment_id}<br>
       <strong>Order ID:</strong> {order_id}</p>
    <p>{company_email} | {company_phone} | {website_url}</p>
  </div>
</body>
</html>"""


def render_receipt(receipt: Dict) -> str:
    values = {
        "receipt_number": receipt["receipt_number"],
        "date": receipt["issued_at"].strftime("%B %d, %Y"),
        "customer_name": receipt["customer_name"],
        "customer_email": receipt.get("customer_email") or "",
        "course_title": receipt["course_title"],
        "batch_number": str(receipt["batch_number"]),
        "amount": _money(receipt["amount_paid"]),
        "payment_method": receipt.get("payment_method") or "-",
        "payment_id": receipt.get("payment_id") or "-",
        "order_id": receipt.get("order_id") or "-",
        "company": receipt["company"]["name"],
        "company_email": receipt["company"]["email"],
        "company_phone": receipt["company"]["phone"],
        "website_url": receipt["company"]["website"],
    }
    return RECEIPT_HTML.format(**{k: escape(v) for k, v in values.items()})
