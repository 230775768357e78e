from storebot import keyboards
from storebot.catalog import CatalogIndexer, product_fingerprint
from storebot.models import Product, Variant


def numbered_buttons(markup):
    return [int(b["text"]) for row in markup["keyboard"] for b in row if b["text"].isdigit()]


def test_grid_matches_render_list_numbering():
    products = [Product(id=i, name=f"P{i}", price=i) for i in range(1, 15)]
    indexer = CatalogIndexer(max_display=50)

    markup = keyboards.build_main_keyboard(indexer, len(products), per_row=6)

    assert numbered_buttons(markup) == [e.number for e in indexer.render_list(products)]


def test_grid_layout_and_menu_rows():
    markup = keyboards.build_main_keyboard(CatalogIndexer(max_display=50), 14, per_row=6)
    rows = markup["keyboard"]

    assert [b["text"] for b in rows[0]] == [
        keyboards.BTN_PRODUCT_LIST, keyboards.BTN_VOUCHER, keyboards.BTN_STOCK,
    ]
    assert [len(r) for r in rows[1:-1]] == [6, 6, 2]
    assert [b["text"] for b in rows[-1]] == [keyboards.BTN_DEPOSIT, keyboards.BTN_HOW_TO, keyboards.BTN_INFO]
    assert markup["resize_keyboard"] is True
    assert markup["is_persistent"] is True


def test_grid_capped_at_max_display():
    markup = keyboards.build_main_keyboard(CatalogIndexer(max_display=50), 120, per_row=6)
    assert numbered_buttons(markup) == list(range(1, 51))


def test_empty_catalog_keeps_navigation():
    markup = keyboards.build_main_keyboard(CatalogIndexer(), 0)
    assert len(markup["keyboard"]) == 2
    assert numbered_buttons(markup) == []


def test_page_of_grid():
    indexer = CatalogIndexer(max_display=10, page_size=4)
    markup = keyboards.build_main_keyboard(indexer, 12, per_row=6, page=1)
    assert numbered_buttons(markup) == [5, 6, 7, 8]


def test_list_pager():
    indexer = CatalogIndexer(max_display=10, page_size=4)

    assert keyboards.build_list_pager(CatalogIndexer(max_display=50), 30, 0) is None

    first = keyboards.build_list_pager(indexer, 12, 0)["inline_keyboard"][0]
    assert [b["callback_data"] for b in first] == ["page:0", "page:1"]

    last = keyboards.build_list_pager(indexer, 12, 2)["inline_keyboard"][0]
    assert [b["text"] for b in last] == ["« Prev", "3/3"]
    assert keyboards.parse_page_data(last[0]["callback_data"]) == keyboards.PageRequest(1)


def test_list_pager_carries_catalog_fingerprint():
    indexer = CatalogIndexer(max_display=10, page_size=4)

    nav = keyboards.build_list_pager(indexer, 12, 1, "abcd1234")["inline_keyboard"][0]

    assert [b["callback_data"] for b in nav] == ["page:0:abcd1234", "page:1:abcd1234", "page:2:abcd1234"]
    assert keyboards.parse_page_data(nav[2]["callback_data"]) == keyboards.PageRequest(2, "abcd1234")


def test_product_keyboard_single_unit():
    product = Product(id=5, name="Canva", price=15000, unit="month")
    markup = keyboards.build_product_keyboard(product)
    buttons = [row[0] for row in markup["inline_keyboard"]]

    assert buttons[0]["callback_data"] == f"co:5:{product_fingerprint(product)}"
    assert buttons[-1]["callback_data"] == "cancel"

    request = keyboards.parse_checkout_data(buttons[0]["callback_data"])
    assert request.product_id == "5"
    assert request.variant_index is None


def test_product_keyboard_variants():
    product = Product(id=9, name="Netflix", variants=[Variant("1 Month", 10000), Variant("3 Months", 25000)])
    markup = keyboards.build_product_keyboard(product)
    buttons = [row[0] for row in markup["inline_keyboard"]]

    assert len(buttons) == 3
    assert "Rp 25.000" in buttons[1]["text"]
    for data in (b["callback_data"] for b in buttons[:2]):
        assert len(data.encode()) <= 64

    request = keyboards.parse_checkout_data(buttons[1]["callback_data"])
    assert request.variant_index == 1
    assert request.fingerprint == product_fingerprint(product)


def test_parse_checkout_data_rejects_garbage():
    assert keyboards.parse_checkout_data("vco:9:x:abc") is None
    assert keyboards.parse_checkout_data("checkout_9") is None
    assert keyboards.parse_checkout_data("") is None
    assert keyboards.parse_page_data("page:x") is None
    assert keyboards.parse_page_data("page:²") is None
    assert keyboards.parse_page_data("page:1:a:b") is None
