"""Tests for pricewatch/fetching/http_client.py"""

from unittest.mock import patch

import pytest
import requests

from pricewatch.fetching.http_client import HttpClient, read_response_text
from pricewatch.models import ErrorCategory
from pricewatch.resilience import CancellationToken, ExtractionCancelled, ScrapeError


@pytest.fixture
def client():
    return HttpClient(user_agents=["TestAgent/1.0"])


class TestGetText:
    def test_returns_body(self, client, make_response):
        response = make_response(body=b"<html>ok</html>")
        with patch.object(client.session, "request", return_value=response) as mock_request:
            assert client.get_text("https://a.com/p", timeout=5) == "<html>ok</html>"

        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://a.com/p")
        assert kwargs["timeout"] == 5
        assert kwargs["stream"] is True
        assert kwargs["headers"]["User-Agent"] == "TestAgent/1.0"
        response.close.assert_called_once()

    def test_pinned_user_agent(self, client, make_response):
        with patch.object(client.session, "request", return_value=make_response(body=b"x")) as mock_request:
            client.get_text("https://a.com/p", timeout=5, user_agent="Pinned/2.0")
        assert mock_request.call_args.kwargs["headers"]["User-Agent"] == "Pinned/2.0"

    @pytest.mark.parametrize("status,category", [
        (403, ErrorCategory.BOT_DETECTION),
        (429, ErrorCategory.BOT_DETECTION),
        (503, ErrorCategory.NETWORK_ERROR),
    ])
    def test_error_status_classified(self, client, make_response, status, category):
        with patch.object(client.session, "request", return_value=make_response(status=status)):
            with pytest.raises(ScrapeError) as exc_info:
                client.get_text("https://a.com/p", timeout=5)
        assert exc_info.value.http_status == status
        assert exc_info.value.category == category

    def test_timeout_classified(self, client):
        with patch.object(client.session, "request", side_effect=requests.exceptions.ReadTimeout("slow")):
            with pytest.raises(ScrapeError) as exc_info:
                client.get_text("https://a.com/p", timeout=5)
        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert "timed out" in str(exc_info.value)

    def test_connection_error_classified(self, client):
        with patch.object(client.session, "request", side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(ScrapeError) as exc_info:
                client.get_text("https://a.com/p", timeout=5)
        assert exc_info.value.category == ErrorCategory.NETWORK_ERROR

    def test_cancelled_before_request(self, client):
        token = CancellationToken()
        token.cancel()
        with patch.object(client.session, "request") as mock_request:
            with pytest.raises(ExtractionCancelled):
                client.get_text("https://a.com/p", timeout=5, cancel=token)
        mock_request.assert_not_called()


class TestGetJson:
    def test_decodes_json(self, client, make_response):
        response = make_response(body=b'{"product": {"id": 1}}')
        with patch.object(client.session, "request", return_value=response) as mock_request:
            assert client.get_json("https://a.com/p.json", timeout=5) == {"product": {"id": 1}}
        assert mock_request.call_args.kwargs["headers"]["Accept"] == "application/json"

    def test_invalid_json_is_parse_error(self, client, make_response):
        with patch.object(client.session, "request", return_value=make_response(body=b"<html>")):
            with pytest.raises(ScrapeError) as exc_info:
                client.get_json("https://a.com/p.json", timeout=5)
        assert exc_info.value.category == ErrorCategory.PARSE_ERROR


class TestReadResponseText:
    def test_joins_chunks_and_skips_keepalives(self, make_response):
        response = make_response(chunks=[b"<html>", b"", b"</html>"])
        assert read_response_text(response) == "<html></html>"

    def test_truncates_large_bodies(self, make_response):
        response = make_response(chunks=[b"a" * 10, b"b" * 10, b"c" * 10])
        assert read_response_text(response, max_bytes=15) == "a" * 10 + "b" * 10

    def test_decodes_with_response_encoding(self, make_response):
        response = make_response(body="Précio".encode("latin-1"), encoding="latin-1")
        assert read_response_text(response) == "Précio"

    def test_missing_encoding_defaults_to_utf8(self, make_response):
        response = make_response(body="€99".encode("utf-8"), encoding=None)
        assert read_response_text(response) == "€99"

    def test_cancel_between_chunks(self, make_response):
        token = CancellationToken()

        def chunks():
            yield b"first"
            token.cancel()
            yield b"second"

        response = make_response(chunks=chunks())
        with pytest.raises(ExtractionCancelled):
            read_response_text(response, cancel=token)

    def test_unknown_charset_falls_back_to_utf8(self, make_response):
        response = make_response(body="Preço €49".encode("utf-8"), encoding="x-bogus")
        assert read_response_text(response) == "Preço €49"

    def test_slow_body_exceeds_deadline(self, make_response, fake_clock):
        def chunks():
            for _ in range(6):
                fake_clock.advance(0.3)
                yield b"<p>chunk</p>"

        response = make_response(chunks=chunks())
        with pytest.raises(ScrapeError) as exc_info:
            read_response_text(response, deadline_at=fake_clock() + 0.5, clock=fake_clock, label="Fetch")
        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert "Fetch timed out" in str(exc_info.value)


class TestRequestDeadline:
    def test_trickling_server_times_out(self, make_response, fake_clock):
        def chunks():
            for _ in range(6):
                fake_clock.advance(0.3)
                yield b"<p>chunk</p>"

        client = HttpClient(user_agents=["TestAgent/1.0"], clock=fake_clock)
        response = make_response(chunks=chunks())
        with patch.object(client.session, "request", return_value=response):
            with pytest.raises(ScrapeError) as exc_info:
                client.get_text("https://a.com/p", timeout=0.5)
        assert exc_info.value.category == ErrorCategory.TIMEOUT
        response.close.assert_called_once()

    def test_body_within_budget(self, make_response, fake_clock):
        def chunks():
            fake_clock.advance(0.2)
            yield b"<html>"
            fake_clock.advance(0.2)
            yield b"</html>"

        client = HttpClient(user_agents=["TestAgent/1.0"], clock=fake_clock)
        with patch.object(client.session, "request", return_value=make_response(chunks=chunks())):
            assert client.get_text("https://a.com/p", timeout=0.5) == "<html></html>"
