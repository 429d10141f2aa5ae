"""
Notification dispatch table.

Every email the storefront sends is listed here: who receives it, which
fields the caller must supply, and the subject/body copy. Bodies are
rendered to HTML here; the email endpoint only delivers them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from jinja2 import Environment, StrictUndefined
from markupsafe import Markup

from showroom.core.config import settings
from showroom.core.utils import format_cny, get_now
from showroom.workflow.states import PaymentMethod


class EmailTemplate(str, Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    INSTALLMENT_CONFIRMATION = "installment_confirmation"
    GIVEAWAY_CONFIRMATION = "giveaway_confirmation"
    DEPOSIT_CONFIRMATION = "deposit_confirmation"
    PAYMENT_REQUEST_AGENT = "payment_request_agent"
    PAYMENT_RECEIPT_AGENT = "payment_receipt_agent"
    DEPOSIT_REQUEST_AGENT = "deposit_request_agent"
    DEPOSIT_RECEIPT_AGENT = "deposit_receipt_agent"
    GIVEAWAY_PAYMENT_REQUEST_AGENT = "giveaway_payment_request_agent"
    GIVEAWAY_PAYMENT_RECEIPT_AGENT = "giveaway_payment_receipt_agent"


class Recipient(str, Enum):
    PAYER = "payer"  # the transaction's stored payer_email
    AGENT = "agent"  # the operations mailbox (settings.AGENT_EMAIL)


@dataclass(frozen=True)
class TemplateSpec:
    recipient: Recipient
    required: FrozenSet[str]
    subject: str
    body: str


_env = Environment(autoescape=True, undefined=StrictUndefined)
_env.filters["cny"] = format_cny

# Subjects are plain text
_subject_env = Environment(autoescape=False, undefined=StrictUndefined)
_subject_env.filters["cny"] = format_cny

_CUSTOMER_LAYOUT = _env.from_string("""
<div style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto; border: 1px solid #eee; border-radius: 8px; overflow: hidden;">
  <div style="background-color: #000; color: white; padding: 20px; text-align: center;">
    <h1 style="margin: 0; color: #d9001b; font-size: 28px;">{{ brand }}</h1>
  </div>
  <div style="padding: 30px;">
    <h2 style="color: #d9001b; font-size: 22px;">{{ title }}</h2>
    {{ content }}
    <p style="margin-top: 30px; font-size: 14px; color: #777;">Thank you for choosing {{ dealership }}.</p>
  </div>
  <div style="background-color: #f8f8f8; color: #777; padding: 20px; text-align: center; font-size: 12px;">
    <p>&copy; {{ year }} {{ dealership }} All Rights Reserved.</p>
  </div>
</div>
""")

_AGENT_LAYOUT = _env.from_string(
    '<div style="font-family: sans-serif; padding: 1rem;">'
    "<p>This is an automated notification for the payment agent.</p>{{ content }}</div>"
)


TEMPLATES: Dict[EmailTemplate, TemplateSpec] = {
    EmailTemplate.ORDER_CONFIRMATION: TemplateSpec(
        recipient=Recipient.PAYER,
        required=frozenset({"payer_name", "vehicle_name", "amount"}),
        subject="Your {{ brand_short }} {{ vehicle_name }} Order is Confirmed!",
        body="""
<p>Dear {{ payer_name }},</p>
<p>Great news! Your payment has been successfully verified, and your order for the <strong>{{ vehicle_name }}</strong> is now confirmed.</p>
<p><strong>Total Amount Paid:</strong> {{ amount | cny }}</p>
<p>Our team will contact you shortly to arrange the final details and delivery.</p>
""",
    ),
    EmailTemplate.INSTALLMENT_CONFIRMATION: TemplateSpec(
        recipient=Recipient.PAYER,
        required=frozenset({"payer_name", "vehicle_name", "monthly_payment", "term_months"}),
        subject="Your {{ brand_short }} {{ vehicle_name }} Financing Application is Approved!",
        body="""
<p>Dear {{ payer_name }},</p>
<p>Congratulations! Your financing application for the <strong>{{ vehicle_name }}</strong> has been successfully approved.</p>
<p>Your estimated monthly payment will be <strong>{{ monthly_payment | cny }}</strong> for {{ term_months }} months.</p>
<p>Our team will be in touch soon with your full payment schedule and contract.</p>
""",
    ),
    EmailTemplate.GIVEAWAY_CONFIRMATION: TemplateSpec(
        recipient=Recipient.PAYER,
        required=frozenset({"payer_name", "raffle_code"}),
        subject="Your {{ brand_short }} Giveaway Entry is Confirmed!",
        body="""
<p>Dear {{ payer_name }},</p>
<p>Thank you for entering our giveaway! Your entry is confirmed.</p>
<p>Your unique raffle code is:</p>
<div style="background-color: #f0f0f0; border: 2px dashed #d9001b; padding: 15px; text-align: center; margin: 20px 0;">
  <strong style="font-size: 24px; letter-spacing: 2px;">{{ raffle_code }}</strong>
</div>
<p>Please keep this code safe. We will announce the winner after the giveaway period ends. Good luck!</p>
""",
    ),
    EmailTemplate.DEPOSIT_CONFIRMATION: TemplateSpec(
        recipient=Recipient.PAYER,
        required=frozenset({"payer_name", "amount"}),
        subject="Your deposit of {{ amount | cny }} has been credited",
        body="""
<p>Dear {{ payer_name }},</p>
<p>We have verified your payment. <strong>{{ amount | cny }}</strong> has been credited to your wallet.</p>
""",
    ),
    EmailTemplate.PAYMENT_REQUEST_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "amount", "method"}),
        subject="Payment Request: {{ method_label }} from {{ payer_name }}",
        body="""
<p><strong>{{ payer_name }}</strong> wants to make a payment of <strong>{{ amount | cny }}</strong> via {{ method_label }} and is awaiting your response.</p>
{% if method == "crypto" %}
<p>Please send the verified wallet address to the customer's registered email address (<strong>{{ payer_email }}</strong>) to complete the transaction.</p>
{% else %}
<p>Please send the verified bank account details to the customer's registered email address (<strong>{{ payer_email }}</strong>) to complete the transaction.</p>
{% endif %}
""",
    ),
    EmailTemplate.PAYMENT_RECEIPT_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "transaction_id", "vehicle_name", "receipt_reference"}),
        subject="Payment Receipt Submitted for Order {{ transaction_id }}",
        body="""
<p>A payment receipt has been submitted by <strong>{{ payer_name }}</strong> ({{ payer_email }}) for their order of a <strong>{{ vehicle_name }}</strong>.</p>
<p><strong>Order ID:</strong> {{ transaction_id }}</p>
<p>Please review the receipt at the following link: <a href="{{ receipt_reference }}">View Receipt</a></p>
<p>After verifying the payment, please go to the Admin Panel to mark the payment as successful. This will trigger the final confirmation to the customer.</p>
""",
    ),
    EmailTemplate.DEPOSIT_REQUEST_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "amount", "method"}),
        subject="Deposit Request: {{ method_label }} from {{ payer_name }}",
        body="""
<p><strong>{{ payer_name }}</strong> ({{ payer_email }}) has requested to deposit <strong>{{ amount | cny }}</strong> via {{ method_label }}.</p>
<p>Please send them the necessary payment details to complete the transaction.</p>
<p>Once the payment is received, please go to the Admin Panel under the 'Deposits' tab to confirm it and credit their account.</p>
""",
    ),
    EmailTemplate.DEPOSIT_RECEIPT_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "transaction_id", "amount", "receipt_reference"}),
        subject="Deposit Receipt Submitted for Deposit {{ transaction_id }}",
        body="""
<p>A deposit receipt has been submitted by <strong>{{ payer_name }}</strong> ({{ payer_email }}) for a deposit of <strong>{{ amount | cny }}</strong>.</p>
<p><strong>Deposit ID:</strong> {{ transaction_id }}</p>
<p>Please review the receipt at the following link: <a href="{{ receipt_reference }}">View Receipt</a></p>
<p>After verifying the payment, please go to the Admin Panel under the 'Deposits' tab to confirm it and credit the user's account.</p>
""",
    ),
    EmailTemplate.GIVEAWAY_PAYMENT_REQUEST_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "amount"}),
        subject="Giveaway Entry Payment Request from {{ payer_name }}",
        body="""
<p><strong>{{ payer_name }}</strong> ({{ payer_email }}) wants to pay the giveaway entry fee of <strong>{{ amount | cny }}</strong>.</p>
<p>Please send them the necessary bank or crypto details to complete the payment.</p>
""",
    ),
    EmailTemplate.GIVEAWAY_PAYMENT_RECEIPT_AGENT: TemplateSpec(
        recipient=Recipient.AGENT,
        required=frozenset({"payer_name", "payer_email", "transaction_id", "receipt_reference"}),
        subject="Giveaway Receipt Submitted for Entry {{ transaction_id }}",
        body="""
<p>A receipt has been submitted by <strong>{{ payer_name }}</strong> ({{ payer_email }}) for their giveaway entry.</p>
<p><strong>Entry ID:</strong> {{ transaction_id }}</p>
<p>Please review the receipt: <a href="{{ receipt_reference }}">View Receipt</a></p>
<p>After verifying, go to the Admin Panel -> Giveaway tab to confirm the payment.</p>
""",
    ),
}


def resolve_recipient(template: EmailTemplate, fields: Mapping[str, Any], agent_email: str = None) -> str:
    tpl = TEMPLATES[template]
    if tpl.recipient is Recipient.AGENT:
        return agent_email or settings.AGENT_EMAIL
    return fields["payer_email"]


def render_email(template: EmailTemplate, fields: Mapping[str, Any]) -> Tuple[str, str]:
    """Returns (subject, html_body). Raises ValueError if a required field is missing."""
    tpl = TEMPLATES[template]
    missing = tpl.required - set(k for k, v in fields.items() if v is not None)
    if missing:
        raise ValueError(f"{template.value} is missing fields: {', '.join(sorted(missing))}")

    context = dict(fields)
    context.setdefault("brand_short", settings.BRAND_NAME)
    if "method" in context:
        context["method_label"] = PaymentMethod(context["method"]).label

    subject = _subject_env.from_string(tpl.subject).render(**context)
    content = _env.from_string(tpl.body).render(**context)
    # Rendered fragments are already escaped
    if tpl.recipient is Recipient.AGENT:
        body = _AGENT_LAYOUT.render(content=Markup(content))
    else:
        body = _CUSTOMER_LAYOUT.render(
            brand=settings.BRAND_NAME,
            dealership=settings.DEALERSHIP_NAME,
            title=subject,
            content=Markup(content),
            year=get_now().year,
        )
    return subject, body
