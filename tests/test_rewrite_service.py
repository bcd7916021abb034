"""
Tests for request validation, the rewrite flow and the Anthropic client.
"""

import unittest
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx

from conftest import FakeRewriter, FrozenClock
from src.accounts import InMemoryAccountStore
from src.rewrite import (
    AnthropicRewriter,
    InvalidRewriteRequest,
    RewriteService,
    RewriteUnavailable,
    Tone,
    UnconfiguredRewriter,
    build_prompt,
    validate_request,
)
from src.types.accounts import Account, AnonymousSession, Tier
from src.usage import QuotaExhausted, UsageLedger

TODAY = date(2024, 3, 15)


class TestValidateRequest(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(validate_request("Hi there", "Friendly"), Tone.FRIENDLY)

    def test_missing_message(self):
        with self.assertRaises(InvalidRewriteRequest) as ctx:
            validate_request("", "friendly")
        self.assertEqual(str(ctx.exception), "Missing message or tone")
        self.assertEqual(ctx.exception.reason, InvalidRewriteRequest.MISSING)

    def test_whitespace_only_message_is_missing(self):
        with self.assertRaises(InvalidRewriteRequest) as ctx:
            validate_request(" \n\t ", "friendly")
        self.assertEqual(ctx.exception.field, "message")
        self.assertEqual(ctx.exception.reason, InvalidRewriteRequest.MISSING)

    def test_missing_tone(self):
        with self.assertRaises(InvalidRewriteRequest) as ctx:
            validate_request("Hello", None)
        self.assertEqual(ctx.exception.field, "tone")

    def test_length_limit_is_inclusive(self):
        self.assertEqual(validate_request("x" * 3000, "concise"), Tone.CONCISE)
        with self.assertRaises(InvalidRewriteRequest) as ctx:
            validate_request("x" * 3001, "concise")
        self.assertEqual(str(ctx.exception), "Message too long (max 3,000 chars)")

    def test_unknown_tone(self):
        with self.assertRaises(InvalidRewriteRequest) as ctx:
            validate_request("Hello", "sarcastic")
        self.assertEqual(ctx.exception.reason, InvalidRewriteRequest.UNKNOWN_TONE)


class TestBuildPrompt(unittest.TestCase):

    def test_includes_tone_and_message(self):
        prompt = build_prompt("ship it", Tone.DIPLOMATIC.label, Tone.DIPLOMATIC.description)
        self.assertIn("diplomatic tone (tactful & balanced)", prompt)
        self.assertTrue(prompt.endswith("\n\nship it"))
        self.assertIn("Return ONLY the rewritten message", prompt)


class TestRewriteService(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryAccountStore([Account(id="u1", referral_code="CODE0001")])
        self.rewriter = FakeRewriter("Could you take a look?")
        self.ledger = UsageLedger(self.store, FrozenClock())
        self.service = RewriteService(self.rewriter, self.ledger, self.store)

    async def test_signed_in_success_records_usage_and_log(self):
        account = await self.store.get("u1")
        result = await self.service.rewrite_for_account(account, "look at this", Tone.FRIENDLY)

        self.assertEqual(result.rewrite, "Could you take a look?")
        self.assertEqual((result.usage, result.limit, result.is_pro), (1, 3, False))
        self.assertEqual((await self.store.get("u1")).daily_usage_count, 1)
        self.assertEqual(len(self.store.rewrites), 1)
        self.assertEqual(self.store.rewrites[0].tone, "friendly")
        self.assertEqual(self.rewriter.calls[0]["tone"], "Friendly")

    async def test_model_failure_consumes_nothing(self):
        self.rewriter.fail = True
        account = await self.store.get("u1")
        with self.assertRaises(RewriteUnavailable):
            await self.service.rewrite_for_account(account, "hi", Tone.CASUAL)
        self.assertEqual((await self.store.get("u1")).daily_usage_count, 0)
        self.assertEqual(self.store.rewrites, [])

    async def test_exhausted_skips_model(self):
        await self.store.increment_usage("u1", TODAY)
        await self.store.increment_usage("u1", TODAY)
        await self.store.increment_usage("u1", TODAY)
        with self.assertRaises(QuotaExhausted):
            await self.service.rewrite_for_account(await self.store.get("u1"), "hi", Tone.CASUAL)
        self.assertEqual(self.rewriter.calls, [])

    async def test_pro_limit_reported(self):
        await self.store.update("u1", tier=Tier.PRO, subscription_ref="sub_1")
        result = await self.service.rewrite_for_account(await self.store.get("u1"), "hi", Tone.CASUAL)
        self.assertEqual((result.limit, result.is_pro), (30, True))

    async def test_log_failure_does_not_fail_rewrite(self):
        self.store.log_rewrite = AsyncMock(side_effect=RuntimeError("db down"))
        result = await self.service.rewrite_for_account(await self.store.get("u1"), "hi", Tone.CASUAL)
        self.assertEqual(result.usage, 1)

    async def test_anonymous_success(self):
        result = await self.service.rewrite_anonymous("hi", Tone.CASUAL, AnonymousSession(count=2, day=TODAY))
        self.assertIsNone(result.usage)
        self.assertEqual(result.limit, 3)
        self.assertEqual(self.store.rewrites, [])

    async def test_anonymous_exhausted(self):
        with self.assertRaises(QuotaExhausted):
            await self.service.rewrite_anonymous("hi", Tone.CASUAL, AnonymousSession(count=3, day=TODAY))
        self.assertEqual(self.rewriter.calls, [])


def _response(text):
    return MagicMock(content=[MagicMock(text=text)])


class TestAnthropicRewriter(unittest.IsolatedAsyncioTestCase):

    def make(self, client):
        return AnthropicRewriter(api_key="sk-ant-test", model="claude-test", client=client)

    async def test_returns_stripped_text(self):
        client = MagicMock()
        client.messages.create.return_value = _response("  Hello!  \n")
        result = await self.make(client).rewrite("hey", "Friendly", "Warm & approachable")

        self.assertEqual(result, "Hello!")
        kwargs = client.messages.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "claude-test")
        self.assertEqual(kwargs["max_tokens"], 512)
        self.assertIn("friendly tone", kwargs["messages"][0]["content"])

    async def test_empty_output_is_unavailable(self):
        client = MagicMock()
        client.messages.create.return_value = _response("   ")
        with self.assertRaises(RewriteUnavailable):
            await self.make(client).rewrite("hey", "Friendly", "Warm & approachable")

    async def test_timeout_is_unavailable(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = anthropic.APITimeoutError(request=request)
        with self.assertRaises(RewriteUnavailable):
            await self.make(client).rewrite("hey", "Friendly", "Warm & approachable")

    async def test_status_error_is_unavailable(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(529, request=request)
        client.messages.create.side_effect = anthropic.APIStatusError(
            "overloaded", response=response, body=None
        )
        with self.assertRaises(RewriteUnavailable):
            await self.make(client).rewrite("hey", "Friendly", "Warm & approachable")

    async def test_unconfigured_rewriter(self):
        with self.assertRaises(RewriteUnavailable):
            await UnconfiguredRewriter().rewrite("hey", "Friendly", "Warm & approachable")


if __name__ == "__main__":
    unittest.main()
