import io

import pytest

from urlcache.errors import CacheIOError, MalformedResponseError
from urlcache.headers import ResponseHeader, build_request, parse_header, read_header


class BrokenReader:
    def readline(self, limit=-1):
        raise ConnectionResetError("peer reset")


def test_unconditional_request():
    request = build_request("/file.txt", "example.com", 80)
    assert request == b"GET /file.txt HTTP/1.1\r\nHost: example.com:80\r\n\r\n"


def test_conditional_request_field_order():
    request = build_request("/a/b.html", "localhost", 8080, "Wed, 21 Oct 2015 07:28:00 GMT")
    assert request == (
        b"GET /a/b.html HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"If-Modified-Since: Wed, 21 Oct 2015 07:28:00 GMT\r\n"
        b"\r\n"
    )


def test_read_header_stops_at_boundary():
    reader = io.BytesIO(
        b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\nLast-Modified: Wed, 21 Oct 2015 07:28:00 GMT\r\n\r\nhello"
    )
    header = read_header(reader)

    assert header.status_line == "HTTP/1.1 200 OK"
    assert header.status_code == 200
    assert header.content_length == 5
    assert header.last_modified == "Wed, 21 Oct 2015 07:28:00 GMT"
    assert header.raw.endswith(b"\r\n\r\n")
    assert reader.read() == b"hello"


def test_body_that_looks_like_a_header_is_left_alone():
    reader = io.BytesIO(b"HTTP/1.1 200 OK\r\nContent-Length: 8\r\n\r\n\r\n\r\nab\r\n")
    header = read_header(reader)
    assert header.content_length == 8
    assert reader.read() == b"\r\n\r\nab\r\n"


def test_not_modified_without_fields():
    header = read_header(io.BytesIO(b"HTTP/1.1 304 Not Modified\r\n\r\n"))
    assert header.status_code == 304
    assert header.fields == {}


def test_connection_closed_before_terminator():
    with pytest.raises(MalformedResponseError):
        read_header(io.BytesIO(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n"))


def test_bare_lf_is_not_a_boundary():
    with pytest.raises(MalformedResponseError):
        read_header(io.BytesIO(b"HTTP/1.1 200 OK\n\nhello"))


def test_oversized_header():
    reader = io.BytesIO(b"HTTP/1.1 200 OK\r\nX-Filler: " + b"a" * 200 + b"\r\n\r\n")
    with pytest.raises(MalformedResponseError):
        read_header(reader, max_bytes=64)


def test_transport_failure():
    with pytest.raises(CacheIOError):
        read_header(BrokenReader())


def test_field_lookup():
    header = parse_header(b"HTTP/1.1 200 OK\r\ncontent-length: 12\r\nX-Odd:  spaced value \r\n\r\n")
    assert header.get("content-length") == "12"
    assert header.get("Content-Length") == "12"
    assert header.get("X-Odd") == "spaced value"
    assert header.get("Last-Modified") is None


def test_missing_required_fields():
    header = ResponseHeader("HTTP/1.1 200 OK", {})
    with pytest.raises(MalformedResponseError):
        header.content_length
    with pytest.raises(MalformedResponseError):
        header.last_modified


def test_invalid_content_length():
    header = ResponseHeader("HTTP/1.1 200 OK", {"Content-Length": "-1"})
    with pytest.raises(MalformedResponseError):
        header.content_length


def test_bad_status_line():
    with pytest.raises(MalformedResponseError):
        ResponseHeader("garbage").status_code


def test_non_ascii_digits_in_content_length():
    header = parse_header(b"HTTP/1.1 200 OK\r\nContent-Length: \xb2\r\n\r\n")
    with pytest.raises(MalformedResponseError):
        header.content_length


def test_non_ascii_digits_in_status_line():
    header = parse_header(b"HTTP/1.1 \xb2\xb3\xb9 OK\r\n\r\n")
    with pytest.raises(MalformedResponseError):
        header.status_code
