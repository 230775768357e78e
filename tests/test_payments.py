import httpx
import pytest

from storebot.errors import InvalidTransition, NoPendingOrder, UploadFailed
from storebot.payments import ImageHost


async def test_ingest_proof_moves_order_to_verification(ingestion, supabase, image_host, telegram):
    product = supabase.add_product("Netflix", price=50000)
    row = supabase.add_order(42, product["id"], 50000, variant_name="1 Month")

    order = await ingestion.ingest_proof(42, b"jpeg-bytes", username="budi")

    assert order.id == row["id"]
    assert order.status == "verification"
    assert order.payment_proof_url == f"https://files.example.test/proof_{row['id']}.jpg"
    assert image_host.uploads == [(f"proof_{row['id']}.jpg", b"jpeg-bytes", "image/jpeg")]

    operator = telegram.sent("sendPhoto")
    assert len(operator) == 1
    assert operator[0]["chat_id"] == "999"
    assert f"#{row['id']}" in operator[0]["caption"]
    assert "Netflix" in operator[0]["caption"]
    assert "@budi" in operator[0]["caption"]


async def test_scenario_c_no_pending_order(ingestion, supabase, image_host):
    supabase.add_order(42, 1, 10000, status="verification")

    with pytest.raises(NoPendingOrder):
        await ingestion.ingest_proof(42, b"jpeg-bytes")

    assert image_host.uploads == []
    assert supabase.writes("orders") == []


async def test_upload_failure_leaves_order_untouched(ingestion, supabase, image_host):
    row = supabase.add_order(42, 1, 10000)
    image_host.fail = True

    with pytest.raises(UploadFailed):
        await ingestion.ingest_proof(42, b"jpeg-bytes")

    assert supabase.find("orders", row["id"])["status"] == "pending"
    assert supabase.find("orders", row["id"])["payment_proof_url"] is None


async def test_operator_notification_failure_is_not_fatal(ingestion, supabase, telegram):
    row = supabase.add_order(42, 1, 10000)
    telegram.failing.add("sendPhoto")

    order = await ingestion.ingest_proof(42, b"jpeg-bytes")

    assert order.status == "verification"
    assert supabase.find("orders", row["id"])["status"] == "verification"


async def test_racing_uploads_transition_once(ingestion, orders, supabase):
    row = supabase.add_order(42, 1, 10000)
    pending = await orders.find_active_pending(42)

    # Second upload read the same pending order before the first one committed
    await ingestion.ingest_proof(42, b"first")
    with pytest.raises(InvalidTransition):
        await orders.attach_proof(pending.id, "https://second")

    assert supabase.find("orders", row["id"])["payment_proof_url"].endswith(f"proof_{row['id']}.jpg")


# ============================================================
# IMAGE HOST
# ============================================================
def image_host_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ImageHost(client, "https://catbox.example/user/api.php")


async def test_image_host_returns_link():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, text="https://files.catbox.example/abc.jpg\n")

    link = await image_host_with(handler).upload(b"img", "proof_1.jpg")

    assert link == "https://files.catbox.example/abc.jpg"
    assert seen["url"] == "https://catbox.example/user/api.php"
    assert b"fileToUpload" in seen["body"]
    assert b"fileupload" in seen["body"]


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="oops"),
    httpx.Response(200, text="File too large"),
])
async def test_image_host_failures(response):
    with pytest.raises(UploadFailed):
        await image_host_with(lambda request: response).upload(b"img", "proof_1.jpg")


async def test_image_host_unreachable():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(UploadFailed):
        await image_host_with(handler).upload(b"img", "proof_1.jpg")
