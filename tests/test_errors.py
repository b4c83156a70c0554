import anthropic
import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from agentic_cli.errors import MaxIterationsExceededError, UnsupportedProviderError, classify_error

REQUEST = httpx.Request("POST", "https://example.invalid/v1")


@pytest.mark.parametrize(
    "exc, code",
    [
        (openai.RateLimitError("slow", response=httpx.Response(429, request=REQUEST), body=None), "rate_limit"),
        (anthropic.RateLimitError("slow", response=httpx.Response(429, request=REQUEST), body=None), "rate_limit"),
        (genai_errors.ClientError(429, {"error": {"message": "quota"}}), "rate_limit"),
        (anthropic.APIConnectionError(request=REQUEST), "connection_error"),
        (openai.APITimeoutError(request=REQUEST), "connection_error"),
        (openai.InternalServerError("down", response=httpx.Response(500, request=REQUEST), body=None), "api_error"),
        (genai_errors.ServerError(503, {"error": {"message": "unavailable"}}), "api_error"),
        (KeyError("x"), "KeyError"),
    ],
)
def test_classify_error(exc, code):
    assert classify_error(exc).code == code


def test_status_is_reported():
    exc = anthropic.BadRequestError("bad", response=httpx.Response(400, request=REQUEST), body=None)

    info = classify_error(exc)

    assert info.details == {"status": 400}
    assert "bad" in info.message


def test_raised_errors():
    err = MaxIterationsExceededError(3, last_response="resp", trace={"iterations": 3})
    assert err.max_iterations == 3 and err.last_response == "resp"
    assert "3" in str(err)

    unsupported = UnsupportedProviderError("mystery")
    assert isinstance(unsupported, ValueError)
    assert unsupported.provider_type == "mystery"
