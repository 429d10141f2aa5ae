import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from showroom.core.utils import to_decimal, to_timezone
from showroom.models.payment import Order, Deposit
from decimal import Decimal
import io

header_font = Font(bold=True, color="FFFFFF")
header_fill = PatternFill(start_color="D9001B", end_color="D9001B", fill_type="solid")
center_align = Alignment(horizontal="center", vertical="center")
thin_border = Border(left=Side(style='thin'), right=Side(style='thin'),
                     top=Side(style='thin'), bottom=Side(style='thin'))

def style_header(ws, headers):
    ws.append(headers)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = center_align
        cell.border = thin_border

def _time(dt):
    dt = to_timezone(dt)
    return dt.strftime('%Y-%m-%d %H:%M:%S') if dt else ""

def _save(wb) -> io.BytesIO:
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output

async def export_orders(session: AsyncSession) -> io.BytesIO:
    result = await session.execute(select(Order).order_by(Order.created_at))
    orders = result.scalars().all()

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Orders"
    style_header(ws, ["Order ID", "Date", "Customer", "Email", "Vehicle", "Amount (CNY)",
                      "Payment", "Method", "Fulfillment", "Receipt"])
    for o in orders:
        ws.append([o.id, o.order_date or _time(o.created_at), o.payer_name, o.payer_email, o.vehicle_name,
                   float(o.amount), o.payment_status, o.payment_method or "", o.fulfillment_status,
                   o.receipt_reference or ""])

    # Summary: paid orders only count towards revenue
    paid = [o for o in orders if o.payment_status == "Paid"]
    summary = wb.create_sheet("Summary")
    summary.column_dimensions['A'].width = 24
    summary.column_dimensions['B'].width = 18
    for row in [
        ("Orders", len(orders)),
        ("Paid orders", len(paid)),
        ("Revenue (CNY)", float(sum((to_decimal(o.amount) for o in paid), Decimal(0)))),
        ("Awaiting verification", sum(1 for o in orders if o.payment_status == "Verifying")),
    ]:
        summary.append(row)
    return _save(wb)

async def export_deposits(session: AsyncSession) -> io.BytesIO:
    result = await session.execute(select(Deposit).order_by(Deposit.created_at))
    deposits = result.scalars().all()

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Deposits"
    style_header(ws, ["Deposit ID", "Date", "User", "Email", "Amount (CNY)", "Status", "Method", "Receipt"])
    for d in deposits:
        ws.append([d.id, d.request_date or _time(d.created_at), d.payer_name, d.payer_email, float(d.amount),
                   d.payment_status, d.payment_method or "", d.receipt_reference or ""])

    completed = [d for d in deposits if d.payment_status == "Completed"]
    summary = wb.create_sheet("Summary")
    summary.column_dimensions['A'].width = 24
    summary.column_dimensions['B'].width = 18
    summary.append(("Deposits", len(deposits)))
    summary.append(("Credited (CNY)", float(sum((to_decimal(d.amount) for d in completed), Decimal(0)))))
    return _save(wb)
