"""Tests for the Stripe, Tavily and OpenAI chat wrappers (no network)."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import stripe

from porttrip.interfaces.payments import StripeClient
from porttrip.interfaces.web_search import WebSearchClient
from porttrip.llm.chat_client import ChatClient, to_openai_messages
from porttrip.schemas.chat_schemas import ConversationMessage
from porttrip.schemas.errors import BillingUnavailable, ModelUnavailable, PaymentConfigError


def _http(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestStripeClient:
    """Stripe SDK async calls."""

    def _sdk(self):
        sdk = MagicMock()
        sdk.v1.customers.retrieve_async = AsyncMock()
        sdk.v1.customers.update_async = AsyncMock()
        sdk.v1.checkout.sessions.create_async = AsyncMock()
        return sdk

    @pytest.mark.asyncio
    async def test_reads_metadata_as_strings(self):
        sdk = self._sdk()
        sdk.v1.customers.retrieve_async.return_value = stripe.StripeObject.construct_from(
            {"id": "cus_1", "metadata": {"plan": "pro", "used": 3}}, "sk_test"
        )
        client = StripeClient(secret_key="sk_test", client=sdk)

        metadata = await client.get_customer_metadata("cus_1")

        assert metadata == {"plan": "pro", "used": "3"}
        sdk.v1.customers.retrieve_async.assert_awaited_once_with("cus_1")

    @pytest.mark.asyncio
    async def test_metadata_update_sends_string_values(self):
        sdk = self._sdk()
        sdk.v1.customers.update_async.return_value = stripe.StripeObject.construct_from(
            {"id": "cus_1", "metadata": {"used": "4"}}, "sk_test"
        )
        client = StripeClient(secret_key="sk_test", client=sdk)

        metadata = await client.update_customer_metadata("cus_1", {"used": 4})

        assert metadata == {"used": "4"}
        sdk.v1.customers.update_async.assert_awaited_once_with("cus_1", {"metadata": {"used": "4"}})

    @pytest.mark.asyncio
    async def test_checkout_session(self):
        sdk = self._sdk()
        sdk.v1.checkout.sessions.create_async.return_value = stripe.StripeObject.construct_from(
            {"id": "cs_1", "url": "https://checkout.stripe.com/c/1"}, "sk_test"
        )
        client = StripeClient(secret_key="sk_test", client=sdk)

        url = await client.create_checkout_session("pro", "price_pro", "https://a/ok", "https://a/cancel")

        assert url == "https://checkout.stripe.com/c/1"
        params = sdk.v1.checkout.sessions.create_async.call_args.args[0]
        assert params["mode"] == "subscription"
        assert params["line_items"] == [{"price": "price_pro", "quantity": 1}]
        assert params["metadata"] == {"plan": "pro"}

    @pytest.mark.asyncio
    async def test_api_error_is_billing_unavailable(self):
        sdk = self._sdk()
        sdk.v1.customers.retrieve_async.side_effect = stripe.APIError("oops")
        client = StripeClient(secret_key="sk_test", client=sdk)

        with pytest.raises(BillingUnavailable):
            await client.get_customer_metadata("cus_1")

    @pytest.mark.asyncio
    async def test_network_error_is_billing_unavailable(self):
        sdk = self._sdk()
        sdk.v1.customers.update_async.side_effect = stripe.APIConnectionError("refused")
        client = StripeClient(secret_key="sk_test", client=sdk)

        with pytest.raises(BillingUnavailable):
            await client.update_customer_metadata("cus_1", {"used": "1"})

    @pytest.mark.asyncio
    async def test_missing_key(self):
        sdk = self._sdk()
        client = StripeClient(secret_key="", client=sdk)

        with pytest.raises(PaymentConfigError):
            await client.get_customer_metadata("cus_1")
        sdk.v1.customers.retrieve_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_sdk_built_lazily_with_httpx_transport(self):
        client = StripeClient(secret_key="sk_test", timeout=5)

        with patch("porttrip.interfaces.payments.stripe.StripeClient") as sdk_cls:
            assert client._sdk() is sdk_cls.return_value

        assert sdk_cls.call_args.args == ("sk_test",)
        assert isinstance(sdk_cls.call_args.kwargs["http_client"], stripe.HTTPXClient)
        await client.aclose()



class TestWebSearchClient:
    """Tavily search."""

    @pytest.mark.asyncio
    async def test_results_are_capped(self):
        seen = {}

        def handler(request):
            seen["payload"] = json.loads(request.content)
            results = [{"title": f"T{i}", "url": f"https://x/{i}", "content": "c"} for i in range(8)]
            return httpx.Response(200, json={"results": results})

        client = WebSearchClient(api_key="tvly", max_results=6, url="https://tavily.test/search", http_client=_http(handler))

        snippets = await client.search("ferry strike today")

        assert len(snippets) == 6
        assert snippets[0].title == "T0"
        assert seen["payload"]["query"] == "ferry strike today"
        assert seen["payload"]["search_depth"] == "advanced"

    @pytest.mark.asyncio
    async def test_non_200_is_empty(self):
        client = WebSearchClient(
            api_key="tvly", url="https://tavily.test/search",
            http_client=_http(lambda request: httpx.Response(429, json={})),
        )

        assert await client.search("ferry") == []

    @pytest.mark.asyncio
    async def test_missing_key_skips_call(self):
        handler = MagicMock()
        client = WebSearchClient(api_key="", http_client=_http(handler))

        assert await client.search("ferry") == []
        handler.assert_not_called()


class TestChatClient:
    """OpenAI chat completions."""

    def _openai(self, create):
        client = MagicMock()
        client.chat.completions.create = create
        return client

    def test_messages_are_plain_dicts(self):
        messages = [ConversationMessage(role="system", content="persona")]
        assert to_openai_messages(messages) == [{"role": "system", "content": "persona"}]

    @pytest.mark.asyncio
    async def test_complete(self):
        completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Hello"))])
        create = AsyncMock(return_value=completion)
        client = ChatClient(client=self._openai(create), model="gpt-test", temperature=0.6)

        text = await client.complete([ConversationMessage(role="user", content="Hi")])

        assert text == "Hello"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["temperature"] == 0.6
        assert kwargs["stream"] is False

    @pytest.mark.asyncio
    async def test_provider_error_is_model_unavailable(self):
        client = ChatClient(client=self._openai(AsyncMock(side_effect=RuntimeError("429"))))

        with pytest.raises(ModelUnavailable):
            await client.complete([ConversationMessage(role="user", content="Hi")])

    @pytest.mark.asyncio
    async def test_stream_yields_deltas_and_closes(self):
        def chunk(text):
            return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])

        class FakeStream:
            def __init__(self):
                self.closed = False
                self._chunks = [chunk("Metro "), SimpleNamespace(choices=[]), chunk(None), chunk("line 1")]

            def __aiter__(self):
                return self._iterate()

            async def _iterate(self):
                for item in self._chunks:
                    yield item

            async def close(self):
                self.closed = True

        stream = FakeStream()
        client = ChatClient(client=self._openai(AsyncMock(return_value=stream)))

        tokens = [token async for token in client.stream([ConversationMessage(role="user", content="Hi")])]

        assert tokens == ["Metro ", "line 1"]
        assert stream.closed is True
