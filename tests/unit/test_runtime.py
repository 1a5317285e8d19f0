# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import pytest
from filelock import FileLock, Timeout

from webinvoke.config import HttpSettings
from webinvoke.errors import ConfigurationError, FailureKind, HttpResponseError
from webinvoke.http.adapters import StubHttpClient
from webinvoke.http.models import HttpResponse
from webinvoke.options import RequestOptions
from webinvoke.output import lock_path_for
from webinvoke.runtime import PageResult, WebInvoker
from webinvoke.session import WebSession


def _invoker(stub):
    return WebInvoker(settings=HttpSettings(), client_factory=stub.factory)


def _page(url, next_url=None, content=b""):
    headers = {"Link": f'<{next_url}>; rel="next"'} if next_url else {}
    return HttpResponse(status_code=200, headers=headers, content=content)


def test_single_page_invocation_returns_page_result():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=200, content=b"hello")]})
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/"))
    assert len(pages) == 1
    page = pages[0]
    assert isinstance(page, PageResult)
    assert page.status_code == 200
    assert page.text == "hello"
    assert page.errors == []
    assert stub.factory_calls == [False]
    assert stub.closed == 1
    assert page.to_dict()["status_code"] == 200


def test_follow_rel_link_walks_pages():
    stub = StubHttpClient()
    stub.add("https://x/page1", _page("https://x/page1", "https://x/page2", b"1"))
    stub.add("https://x/page2", _page("https://x/page2", "/page3", b"2"))
    stub.add("https://x/page3", _page("https://x/page3", content=b"3"))

    pages = _invoker(stub).invoke(RequestOptions(uri="https://x/page1", follow_rel_link=True))

    assert [p.content for p in pages] == [b"1", b"2", b"3"]
    assert pages[1].relation_links["next"] == "https://x/page3"
    assert [r.url for r in stub.requests] == ["https://x/page1", "https://x/page2", "https://x/page3"]


def test_maximum_follow_rel_link_limits_pages():
    stub = StubHttpClient()
    stub.add("https://x/1", _page("https://x/1", "https://x/2"))
    stub.add("https://x/2", _page("https://x/2", "https://x/3"))
    stub.add("https://x/3", _page("https://x/3", "https://x/4"))
    pages = _invoker(stub).invoke(RequestOptions(uri="https://x/1", follow_rel_link=True, maximum_follow_rel_link=2))
    assert len(pages) == 2


def test_followed_pages_are_bodyless_gets():
    stub = StubHttpClient()
    stub.add("https://x/search", _page("https://x/search", "https://x/search?page=2"))
    stub.add("https://x/search?page=2", _page("https://x/search?page=2"))
    options = RequestOptions(uri="https://x/search", method="POST", body="query", follow_rel_link=True)
    _invoker(stub).invoke(options)
    first, second = stub.requests
    assert (first.method, first.content) == ("POST", b"query")
    assert (second.method, second.content) == ("GET", None)
    assert options.method == "POST"
    assert options.body == "query"


def test_parse_rel_link_without_following():
    stub = StubHttpClient({"https://x/1": [_page("https://x/1", "https://x/2")]})
    pages = _invoker(stub).invoke(RequestOptions(uri="https://x/1", parse_rel_link=True))
    assert len(pages) == 1
    assert pages[0].relation_links == {"next": "https://x/2"}


def test_http_error_raises_with_stripped_detail():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=404, content=b"<html><b>Not here</b></html>")]})
    with pytest.raises(HttpResponseError) as excinfo:
        _invoker(stub).invoke(RequestOptions(uri="http://example/"))
    exc = excinfo.value
    assert str(exc) == "Response status code does not indicate success: 404 (Not Found)."
    assert exc.failure.detail == "Not here"
    assert exc.failure.kind == FailureKind.HTTP_STATUS
    assert exc.error_id == "WebCmdletWebResponseException"
    assert stub.closed == 1


def test_skip_http_error_check_returns_response():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=500)]})
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/", skip_http_error_check=True))
    assert pages[0].status_code == 500


def test_maximum_redirection_zero_reports_non_fatal_failure():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=302, headers={"Location": "/elsewhere"})]})
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/", maximum_redirection=0, skip_http_error_check=True))
    page = pages[0]
    assert page.status_code == 302
    assert [failure.error_id for failure in page.errors] == ["MaximumRedirectExceeded"]
    assert page.errors[0].kind == FailureKind.REDIRECT_LIMIT


def test_redirect_limit_on_followed_page_does_not_stop_the_run():
    stub = StubHttpClient()
    stub.add("https://x/p1", _page("https://x/p1", "https://x/p2", b"1"))
    stub.add("https://x/p2", HttpResponse(status_code=302, headers={"Location": "https://x/p3"}))

    pages = _invoker(stub).invoke(RequestOptions(uri="https://x/p1", maximum_redirection=0, follow_rel_link=True))

    assert [p.status_code for p in pages] == [200, 302]
    assert pages[0].errors == []
    assert [failure.error_id for failure in pages[1].errors] == ["MaximumRedirectExceeded"]
    assert pages[1].errors[0].kind == FailureKind.REDIRECT_LIMIT
    assert [r.url for r in stub.requests] == ["https://x/p1", "https://x/p2"]


def test_preserved_authorization_engages_engine_redirects():
    stub = StubHttpClient()
    stub.add("https://api.example/v1", HttpResponse(status_code=301, headers={"Location": "https://api.example/v2"}))
    stub.add("https://api.example/v2", HttpResponse(status_code=200, content=b"moved"))
    options = RequestOptions(
        uri="https://api.example/v1",
        headers={"Authorization": "Bearer abc"},
        preserve_authorization_on_redirect=True,
    )
    pages = _invoker(stub).invoke(options)
    assert pages[0].content == b"moved"
    assert stub.factory_calls == [True, True]
    assert stub.requests[1].headers["Authorization"] == "Bearer abc"


def test_out_file_is_written(tmp_path):
    target = tmp_path / "out" / "body.bin"
    stub = StubHttpClient({"http://example/file": [HttpResponse(status_code=200, content=b"data")]})
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/file", out_file=str(target)))
    assert target.read_bytes() == b"data"
    assert pages[0].out_file == str(target)


def test_resume_appends_partial_content(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"hello ")
    stub = StubHttpClient(
        {"http://example/file": [HttpResponse(status_code=206, headers={"Content-Range": "bytes 6-10/11"}, content=b"world")]}
    )
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/file", out_file=str(target), resume=True))
    assert target.read_bytes() == b"hello world"
    assert pages[0].resumed is True
    assert stub.requests[0].headers["Range"] == "bytes=6-"


def test_resume_of_complete_file_skips_write(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"complete")
    stub = StubHttpClient({"http://example/file": [HttpResponse(status_code=416, headers={"Content-Range": "bytes */8"})]})
    pages = _invoker(stub).invoke(RequestOptions(uri="http://example/file", out_file=str(target), resume=True))
    assert pages[0].skipped_write is True
    assert target.read_bytes() == b"complete"


def test_stale_resume_overwrites_local_file(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"x" * 30)
    stub = StubHttpClient(
        {
            "http://example/file": [
                HttpResponse(status_code=416, headers={"Content-Range": "bytes */4"}),
                HttpResponse(status_code=200, content=b"new!"),
            ]
        }
    )
    _invoker(stub).invoke(RequestOptions(uri="http://example/file", out_file=str(target), resume=True))
    assert target.read_bytes() == b"new!"


def test_configuration_errors_happen_before_network():
    stub = StubHttpClient()
    with pytest.raises(ConfigurationError):
        _invoker(stub).invoke(RequestOptions(uri="http://example/", resume=True))
    assert stub.factory_calls == []
    assert stub.requests == []


def test_session_is_reused_across_invocations():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=200)]})
    session = WebSession()
    invoker = _invoker(stub)
    invoker.invoke(RequestOptions(uri="http://example/", headers={"X-Api": "1"}), session)
    invoker.invoke(RequestOptions(uri="http://example/"), session)
    assert stub.requests[1].headers["X-Api"] == "1"


def test_cancel_before_run_does_not_poison_next_operation():
    stub = StubHttpClient({"http://example/": [HttpResponse(status_code=200)]})
    invoker = _invoker(stub)
    invoker.cancel()
    assert invoker.invoke(RequestOptions(uri="http://example/"))[0].status_code == 200


def test_out_file_stays_locked_while_the_request_is_in_flight(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"hello ")
    lock_states = []

    def respond(request):
        other = FileLock(str(lock_path_for(target)))
        try:
            other.acquire(timeout=0)
        except Timeout:
            lock_states.append("held")
        else:
            other.release()
            lock_states.append("free")
        return HttpResponse(status_code=206, headers={"Content-Range": "bytes 6-10/11"}, content=b"world")

    stub = StubHttpClient({"http://example/file": [respond]})
    _invoker(stub).invoke(RequestOptions(uri="http://example/file", out_file=str(target), resume=True))

    assert lock_states == ["held"]
    assert target.read_bytes() == b"hello world"
    with FileLock(str(lock_path_for(target))).acquire(timeout=0):
        pass
