"""FetchRequest state and validation tests."""

from __future__ import annotations

import pytest

from RollingFetch import ConfigurationError, FetchRequest, RequestStateError, RollingScheduler


@pytest.mark.parametrize("url", ["", "   ", None])
def test_url_must_be_non_empty(url) -> None:
    with pytest.raises(ConfigurationError):
        FetchRequest(url)


def test_unknown_option_key_fails_fast() -> None:
    with pytest.raises(ConfigurationError, match="unknown keys: bogus"):
        FetchRequest("https://example.org", options={"bogus": 1})

    request = FetchRequest("https://example.org")
    with pytest.raises(ConfigurationError):
        request.set_options({"timeout": -1})


def test_options_are_normalised_and_copied() -> None:
    request = FetchRequest("https://example.org", options={"method": "post", "timeout": 5})

    options = request.options
    assert options == {"method": "POST", "timeout": 5.0}
    options["timeout"] = 99
    assert request.options["timeout"] == 5.0


def test_defaults() -> None:
    request = FetchRequest("https://example.org")

    assert request.options is None
    assert request.merge_with_defaults is False
    assert request.output_path is None
    assert request.attributes is None
    assert request.dispatched is False


def test_attributes_pass_through_unchanged() -> None:
    marker = {"row": object()}
    request = FetchRequest("https://example.org", attributes=marker)

    assert request.attributes is marker


def test_attributes_frozen_once_queued() -> None:
    request = FetchRequest("https://example.org")
    request.set_attributes({"id": 1})
    RollingScheduler().add(request)

    with pytest.raises(RequestStateError):
        request.set_attributes({"id": 2})
    # options may still change until dispatch
    request.set_options({"timeout": 2.0})
    request.set_output_path("/tmp/out.body")


def test_options_and_output_frozen_after_dispatch(fake_transport) -> None:
    request = FetchRequest("https://example.org")
    scheduler = RollingScheduler(transport=fake_transport())
    scheduler.add(request)
    scheduler.execute(lambda *args: None)

    assert request.dispatched
    with pytest.raises(RequestStateError):
        request.set_options({"timeout": 2.0})
    with pytest.raises(RequestStateError):
        request.set_output_path("/tmp/out.body")
    with pytest.raises(RequestStateError):
        request.set_merge_with_defaults(True)


def test_empty_output_path_rejected() -> None:
    with pytest.raises(ConfigurationError):
        FetchRequest("https://example.org").set_output_path("")
