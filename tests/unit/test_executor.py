# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import pytest

from webinvoke.config import HttpSettings
from webinvoke.errors import OperationCancelled, TransportError
from webinvoke.http.adapters import StubHttpClient
from webinvoke.http.builder import RequestBuilder
from webinvoke.http.cancel import CancellationToken
from webinvoke.http.content import ContentEncoder
from webinvoke.http.executor import TransportExecutor, is_redirect_code, is_redirect_to_get, is_retry_code
from webinvoke.http.models import HttpResponse, ResumeState
from webinvoke.options import RequestOptions
from webinvoke.session import WebSession

START = "http://example/start"


def _setup(stub, *, session=None, settings=None, **option_kwargs):
    session = session or WebSession()
    options = RequestOptions(uri=START, **option_kwargs)
    resume = ResumeState(enabled=options.resume)
    builder = RequestBuilder(session, options, resume)
    encoder = ContentEncoder(session, options)
    executor = TransportExecutor(
        session,
        options,
        builder=builder,
        encoder=encoder,
        client_factory=stub.factory,
        resume=resume,
        settings=settings or HttpSettings(),
        cancel_token=CancellationToken(),
    )
    request = builder.build(START)
    encoder.fill_from_options(request)
    return executor, request


def _record_sleeps(monkeypatch, executor):
    sleeps = []
    monkeypatch.setattr(executor.cancel_token, "sleep", sleeps.append)
    return sleeps


def test_status_code_tables():
    assert all(is_redirect_code(code) for code in (300, 301, 302, 303, 307))
    assert not is_redirect_code(308)
    assert is_redirect_to_get(300) and is_redirect_to_get(303)
    assert not is_redirect_to_get(307)
    assert is_retry_code(304) and is_retry_code(400) and is_retry_code(599)
    assert not is_retry_code(200) and not is_retry_code(302)


def test_execute_requires_client_and_request():
    stub = StubHttpClient()
    executor, request = _setup(stub)
    with pytest.raises(ValueError):
        executor.execute(None, request, handle_redirect=False)
    with pytest.raises(ValueError):
        executor.execute(stub, None, handle_redirect=False)


def test_redirect_uses_fresh_non_redirecting_client():
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=302, headers={"Location": "/next"}))
    stub.add("http://example/next", HttpResponse(status_code=200, content=b"ok"))
    executor, request = _setup(stub)

    response = executor.execute(stub, request, handle_redirect=True)

    assert response.status_code == 200
    assert response.content == b"ok"
    assert stub.factory_calls == [True]
    assert [r.url for r in stub.requests] == [START, "http://example/next"]
    assert response.meta["redirect_history"] == ["http://example/next"]


def test_redirect_not_followed_without_handle_redirect():
    stub = StubHttpClient({START: [HttpResponse(status_code=302, headers={"Location": "/next"})]})
    executor, request = _setup(stub)
    response = executor.execute(stub, request, handle_redirect=False)
    assert response.status_code == 302
    assert stub.factory_calls == []


@pytest.mark.parametrize("status_code", [300, 301, 302, 303])
def test_post_redirect_downgrades_to_get(status_code):
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=status_code, headers={"Location": "http://example/after"}))
    stub.add("http://example/after", HttpResponse(status_code=200))
    executor, request = _setup(stub, method="POST", body="payload")
    assert request.content == b"payload"

    executor.execute(stub, request, handle_redirect=True)

    follow_up = stub.requests[1]
    assert follow_up.method == "GET"
    assert follow_up.content is None
    assert executor.options.method == "GET"


def test_post_307_redirect_keeps_method():
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=307, headers={"Location": "http://example/after"}))
    stub.add("http://example/after", HttpResponse(status_code=200))
    executor, request = _setup(stub, method="POST", body="payload")
    executor.execute(stub, request, handle_redirect=True)
    assert stub.requests[1].method == "POST"


def test_put_redirect_keeps_method():
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=302, headers={"Location": "http://example/after"}))
    stub.add("http://example/after", HttpResponse(status_code=200))
    executor, request = _setup(stub, method="PUT", body="x")
    executor.execute(stub, request, handle_redirect=True)
    assert stub.requests[1].method == "PUT"


def test_positive_redirect_cap_is_decremented_and_stops_following():
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=301, headers={"Location": "/a"}))
    stub.add("http://example/a", HttpResponse(status_code=301, headers={"Location": "/b"}))
    stub.add("http://example/b", HttpResponse(status_code=200))
    session = WebSession(maximum_redirection=1)
    executor, request = _setup(stub, session=session)

    response = executor.execute(stub, request, handle_redirect=True)

    assert response.status_code == 301
    assert response.url == "http://example/a"
    assert session.maximum_redirection == 0
    assert len(stub.requests) == 2


def test_unset_redirect_cap_is_bounded_by_settings():
    stub = StubHttpClient({START: [HttpResponse(status_code=302, headers={"Location": START})]})
    executor, request = _setup(stub, settings=HttpSettings(max_redirects=3))
    response = executor.execute(stub, request, handle_redirect=True)
    assert response.status_code == 302
    assert len(stub.requests) == 4
    assert len(response.meta["redirect_history"]) == 3


def test_retry_sends_exactly_n_plus_one_attempts(monkeypatch):
    stub = StubHttpClient({START: [HttpResponse(status_code=503)]})
    session = WebSession(maximum_retry_count=2, retry_interval_seconds=7)
    executor, request = _setup(stub, session=session)
    sleeps = _record_sleeps(monkeypatch, executor)

    response = executor.execute(stub, request, handle_redirect=False)

    assert response.status_code == 503
    assert len(stub.requests) == 3
    assert sleeps == [7, 7]
    assert response.meta["attempts"] == 3
    assert len({id(r) for r in stub.requests}) == 3


def test_redirect_target_gets_a_fresh_attempt_budget(monkeypatch):
    stub = StubHttpClient()
    stub.add(START, HttpResponse(status_code=500), HttpResponse(status_code=302, headers={"Location": "/moved"}))
    stub.add("http://example/moved", HttpResponse(status_code=503), HttpResponse(status_code=200, content=b"ok"))
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=1, retry_interval_seconds=0))
    sleeps = _record_sleeps(monkeypatch, executor)

    response = executor.execute(stub, request, handle_redirect=True)

    assert response.content == b"ok"
    assert [r.url for r in stub.requests] == [START, START, "http://example/moved", "http://example/moved"]
    assert sleeps == [0, 0]
    assert response.meta["attempts"] == 4


def test_retry_stops_on_success(monkeypatch):
    stub = StubHttpClient({START: [HttpResponse(status_code=500), HttpResponse(status_code=200, content=b"done")]})
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=5, retry_interval_seconds=0))
    sleeps = _record_sleeps(monkeypatch, executor)
    response = executor.execute(stub, request, handle_redirect=False)
    assert response.content == b"done"
    assert len(stub.requests) == 2
    assert sleeps == [0]


def test_no_retry_without_retry_count(monkeypatch):
    stub = StubHttpClient({START: [HttpResponse(status_code=500), HttpResponse(status_code=200)]})
    executor, request = _setup(stub)
    sleeps = _record_sleeps(monkeypatch, executor)
    response = executor.execute(stub, request, handle_redirect=False)
    assert response.status_code == 500
    assert len(stub.requests) == 1
    assert sleeps == []


def test_non_retryable_status_ends_loop(monkeypatch):
    stub = StubHttpClient({START: [HttpResponse(status_code=302), HttpResponse(status_code=200)]})
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=3))
    _record_sleeps(monkeypatch, executor)
    response = executor.execute(stub, request, handle_redirect=False)
    assert response.status_code == 302
    assert len(stub.requests) == 1


def test_retried_post_is_refilled():
    stub = StubHttpClient({START: [HttpResponse(status_code=429), HttpResponse(status_code=201)]})
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=1, retry_interval_seconds=0), method="POST", body="data")
    executor.execute(stub, request, handle_redirect=False)
    assert [r.content for r in stub.requests] == [b"data", b"data"]


def test_partial_content_marks_resume_succeeded(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"12345")
    stub = StubHttpClient({START: [HttpResponse(status_code=206, headers={"Content-Range": "bytes 5-9/10"}, content=b"67890")]})
    executor, request = _setup(stub, resume=True, out_file=str(target))
    assert request.headers["Range"] == "bytes=5-"
    executor.execute(stub, request, handle_redirect=False)
    assert executor.resume.succeeded is True


def test_stale_resume_rerequests_without_range(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"x" * 50)
    stub = StubHttpClient(
        {
            START: [
                HttpResponse(status_code=416, headers={"Content-Range": "bytes */20"}),
                HttpResponse(status_code=200, content=b"y" * 20),
            ]
        }
    )
    executor, request = _setup(stub, resume=True, out_file=str(target))

    response = executor.execute(stub, request, handle_redirect=False)

    assert response.status_code == 200
    assert len(stub.requests) == 2
    assert stub.requests[0].headers["Range"] == "bytes=50-"
    assert "Range" not in stub.requests[1].headers
    assert executor.resume.enabled is False
    assert executor.resume.succeeded is False


def test_resume_416_with_matching_length_is_returned(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"x" * 20)
    stub = StubHttpClient({START: [HttpResponse(status_code=416, headers={"Content-Range": "bytes */20"})]})
    executor, request = _setup(stub, resume=True, out_file=str(target))
    response = executor.execute(stub, request, handle_redirect=False)
    assert response.status_code == 416
    assert len(stub.requests) == 1
    assert executor.resume.enabled is True


def test_transport_errors_are_not_retried(monkeypatch):
    stub = StubHttpClient()
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=3))
    sleeps = _record_sleeps(monkeypatch, executor)
    with pytest.raises(TransportError):
        executor.execute(stub, request, handle_redirect=False)
    assert sleeps == []


def test_cancelled_retry_sleep_stops_the_operation():
    stub = StubHttpClient({START: [HttpResponse(status_code=500)]})
    executor, request = _setup(stub, session=WebSession(maximum_retry_count=3, retry_interval_seconds=30))
    executor.cancel_token.cancel()
    with pytest.raises(OperationCancelled):
        executor.execute(stub, request, handle_redirect=False)
    assert stub.requests == []
