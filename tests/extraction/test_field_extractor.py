"""Tests for pricewatch/extraction/field_extractor.py"""

import pytest
from bs4 import BeautifulSoup

from pricewatch.extraction.field_extractor import (
    FieldExtractor,
    element_text,
    extract_field,
    is_in_stock,
)
from pricewatch.extraction.price_parser import validate_price
from pricewatch.models import RetailerConfig, Tier


def soup(html):
    return BeautifulSoup(html, "lxml")


class TestExtractField:
    def test_skips_empty_first_match(self):
        doc = soup('<span class="a"></span><span class="b">  $120.00  </span>')
        assert extract_field(doc, [".a", ".b"]) == "$120.00"

    def test_first_selector_wins(self):
        doc = soup('<span class="b">$10</span><span class="a">$20</span>')
        assert extract_field(doc, [".a", ".b"]) == "$20"

    def test_invalid_selector_skipped(self):
        doc = soup('<span class="price">$15.00</span>')
        assert extract_field(doc, ["div[[[", ".price"]) == "$15.00"

    def test_meta_content(self):
        doc = soup('<html><head><meta property="og:price:amount" content="129.99"></head></html>')
        assert extract_field(doc, ['meta[property="og:price:amount"]']) == "129.99"

    def test_nothing_matches(self):
        assert extract_field(soup("<p>hello</p>"), [".price"]) == ""

    def test_whitespace_collapsed(self):
        doc = soup('<div class="price"><span>$</span>\n  <span>49</span>.<span>99</span></div>')
        assert extract_field(doc, [".price"]) == "$ 49 . 99"


class TestElementText:
    def test_value_attribute_fallback(self):
        element = soup('<div data-price="59.00"></div>').div
        assert element_text(element) == "59.00"

    def test_meta_without_content(self):
        element = soup('<meta property="og:price:amount">').find("meta")
        assert element_text(element) == ""


class TestIsInStock:
    @pytest.mark.parametrize("text", ["Out of Stock", "SOLD OUT", "Currently unavailable"])
    def test_out_of_stock_phrases(self, text):
        assert is_in_stock(text) is False

    @pytest.mark.parametrize("text", ["In stock", "Only 3 left", "", None])
    def test_in_stock_by_default(self, text):
        assert is_in_stock(text) is True


class TestFieldExtractor:
    def test_retailer_selectors_before_generic(self):
        config = RetailerConfig(domain="footlocker.com", name="Foot Locker", price_selectors=(".ProductPrice",))
        doc = soup('<span class="price">$5.00</span><span class="ProductPrice">$89.99</span>')
        payload = FieldExtractor(config).extract(doc, Tier.STANDARD_FETCH)
        assert payload.price_text == "$89.99"
        assert payload.matched_selector == ".ProductPrice"
        assert payload.source == Tier.STANDARD_FETCH

    def test_generic_selectors_for_unknown_retailer(self, og_price_html):
        payload = FieldExtractor(None).extract(soup(og_price_html), Tier.STANDARD_FETCH)
        assert payload.price_text == "129.99"
        assert payload.matched_selector == 'meta[property="og:price:amount"]'

    def test_label_text_does_not_end_search(self):
        doc = soup('<span class="price-label">Price</span><span class="price">$64.00</span>')
        payload = FieldExtractor(None).extract(doc, Tier.STANDARD_FETCH)
        assert payload.price_text == "$64.00"

    def test_rejected_candidate_skipped(self):
        doc = soup('<span class="price">$0.50</span><span data-price="74.99"></span>')
        payload = FieldExtractor(None).extract(
            doc, Tier.STANDARD_FETCH, accept=lambda v: validate_price(v),
        )
        assert payload.price_text == "74.99"

    def test_first_parseable_kept_when_none_accepted(self):
        doc = soup('<span class="price">$0.50</span>')
        payload = FieldExtractor(None).extract(
            doc, Tier.STANDARD_FETCH, accept=lambda v: validate_price(v),
        )
        assert payload.price_text == "$0.50"

    def test_json_ld_fallback(self, jsonld_html):
        payload = FieldExtractor(None).extract(soup(jsonld_html), Tier.RENDERED_FETCH, jsonld_html)
        assert payload.price_text == "89.95"
        assert payload.matched_selector == "json-ld"
        assert payload.in_stock is False
        assert payload.availability_text == "https://schema.org/OutOfStock"
        assert payload.html == jsonld_html

    def test_sale_price_selectors(self):
        config = RetailerConfig(
            domain="shoepalace.com", name="Shoe Palace",
            price_selectors=(".product-price",), sale_price_selectors=(".now",),
        )
        doc = soup('<s class="product-price">$120.00</s><b class="now">$90.00</b>')
        payload = FieldExtractor(config).extract(doc, Tier.STANDARD_FETCH)
        assert payload.price_text == "$120.00"
        assert payload.sale_price_text == "$90.00"

    def test_was_price_not_taken_as_current(self):
        doc = soup('<span class="price-was">$100.00</span> <span class="sale">$80.00</span>')
        payload = FieldExtractor(None).extract(doc, Tier.STANDARD_FETCH)
        assert payload.price_text == ""
        assert payload.sale_price_text == "$80.00"
        assert payload.original_price_text == "$100.00"

    @pytest.mark.parametrize("css_class", ["original-price", "price-was", "compare-at-price"])
    def test_generic_price_skips_struck_through_classes(self, css_class):
        doc = soup(f'<span class="{css_class}">$150.00</span><span class="product-price">$99.00</span>')
        payload = FieldExtractor(None).extract(doc, Tier.STANDARD_FETCH)
        assert payload.price_text == "$99.00"
        assert payload.original_price_text == "$150.00"

    def test_availability_text(self):
        doc = soup('<span class="price">$30.00</span><div class="availability">Sold Out</div>')
        payload = FieldExtractor(None).extract(doc, Tier.STANDARD_FETCH)
        assert payload.availability_text == "Sold Out"
        assert payload.in_stock is False

    def test_no_price_leaves_empty_text(self, no_price_html):
        payload = FieldExtractor(None).extract(soup(no_price_html), Tier.STANDARD_FETCH, no_price_html)
        assert payload.price_text == ""
        assert payload.in_stock is None
