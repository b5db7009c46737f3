"""Late delivery and penalty, written directly in Python."""

from pactum.core.expression_lang.builtins import add_duration, diff_duration_as
from pactum.runtime import clause


@clause(
    params={"request": "LateDeliveryAndPenaltyRequest"},
    returns="LateDeliveryAndPenaltyResponse",
)
def latedeliveryandpenalty(ctx, request):
    agreed = request["agreedDelivery"]
    if agreed >= ctx.now:
        ctx.fail("Cannot exercise late delivery before delivery date")

    contract = ctx.contract
    if contract["forceMajeure"] and request["forceMajeure"]:
        return ctx.record("LateDeliveryAndPenaltyResponse", penalty=0.0, buyerMayTerminate=True)

    diff = diff_duration_as(agreed, ctx.now, "days")
    penalty = (
        diff["amount"]
        / contract["penaltyDuration"]["amount"]
        * contract["penaltyPercentage"]
        / 100.0
        * request["goodsValue"]
    )
    cap = contract["capPercentage"] * request["goodsValue"] / 100.0
    termination = add_duration(agreed, contract["termination"])
    return ctx.record(
        "LateDeliveryAndPenaltyResponse",
        penalty=min(penalty, cap),
        buyerMayTerminate=ctx.now > termination,
    )
