# ------------------------------------------------------------------------------
# Stub transport for the payments service
# ------------------------------------------------------------------------------
from httpx import Request, Response

REVENUE = {
    ("2023/2024", "First Term"): 90000.0,
    ("2023/2024", "Second Term"): 60000.0,
}


def payments_stub(request: Request) -> Response:
    """
    Stubbed ``GET /payments/overview`` that answers in the camelCase shape
    the payments service uses.
    """
    assert request.method == "GET"

    if request.url.path != "/payments/overview":
        return Response(status_code=404, json={"error": f"Unhandled path {request.url.path}"})

    session = request.url.params.get("session")
    term = request.url.params.get("term")
    if term:
        total = REVENUE.get((session, term), 0.0)
    else:
        total = sum(v for (s, _), v in REVENUE.items() if s == session)

    return Response(status_code=200, json={"totalRevenue": total, "totalPayments": 3})


def payments_down(request: Request) -> Response:
    return Response(status_code=503, json={"error": "maintenance"})
