from toe_review.config import settings
from toe_review.schemas.toe import FeeLineItem, Totals


def calculate_totals(
    fee_structure: list[FeeLineItem] | list[dict] | None,
    gst_rate: float | None = None,
) -> Totals:
    rate = settings.gst_rate if gst_rate is None else gst_rate
    subtotal = 0.0
    for item in fee_structure or []:
        if not isinstance(item, FeeLineItem):
            item = FeeLineItem.model_validate(item)
        subtotal += item.cost
    gst = subtotal * rate
    return Totals(subtotal=subtotal, gst=gst, total=subtotal + gst)
