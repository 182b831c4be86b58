"""Unit tests for BatchEmbeddingOrchestrator.

``asyncio.sleep`` is injected as an AsyncMock so delays and retry backoff
are observable without the tests actually waiting.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from embedstore.models.config import StoreConfig
from embedstore.models.document import VectorDocument
from embedstore.services.batch_embedder import BatchEmbeddingOrchestrator
from embedstore.store.document_table import DocumentTable
from embedstore.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    DuplicateIdError,
    EmbeddingTimeoutError,
    ProviderError,
    RateLimitError,
    ValidationError,
)


def _pending(count: int, prefix: str = "doc") -> list[dict]:
    return [{"id": f"{prefix}{i}", "content": f"text number {i}"} for i in range(count)]


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def table() -> DocumentTable:
    return DocumentTable()


def _orchestrator(
    table: DocumentTable,
    provider: MagicMock | None,
    sleep: AsyncMock,
    **config_overrides,
) -> BatchEmbeddingOrchestrator:
    config = StoreConfig(**{"retry_backoff_s": 0.5, **config_overrides})
    return BatchEmbeddingOrchestrator(table, provider, config, sleep=sleep)


# ======================================================================
# Chunking, delay and progress
# ======================================================================


class TestBatching:
    @pytest.mark.asyncio
    async def test_chunks_and_delays_between_batches(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep, batch_delay_ms=0)

        added = await orchestrator.add_documents(
            _pending(15), create_embedding=True, batch_size=5, batch_delay_ms=10
        )

        assert added == 15
        assert len(table) == 15
        assert mock_embedding_provider.embed.await_count == 3
        assert [len(c.args[0]) for c in mock_embedding_provider.embed.await_args_list] == [5, 5, 5]
        # Delay only between batches, never after the last one.
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.01)

    @pytest.mark.asyncio
    async def test_zero_delay_never_sleeps(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        await orchestrator.add_documents(_pending(6), create_embedding=True, batch_size=2)
        assert mock_embedding_provider.embed.await_count == 3
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_defaults_come_from_config(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(
            table, mock_embedding_provider, sleep, batch_size=4, batch_delay_ms=250
        )
        await orchestrator.add_documents(_pending(10), create_embedding=True)

        assert mock_embedding_provider.embed.await_count == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_model_passed_to_provider(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(
            table, mock_embedding_provider, sleep, embedding_model="custom-model"
        )
        await orchestrator.add_documents(_pending(1), create_embedding=True)
        assert mock_embedding_provider.embed.await_args.kwargs["model"] == "custom-model"

    @pytest.mark.asyncio
    async def test_progress_reported_after_each_batch(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        calls: list[tuple[int, int]] = []
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        await orchestrator.add_documents(
            _pending(7),
            create_embedding=True,
            batch_size=3,
            on_progress=lambda processed, total: calls.append((processed, total)),
        )

        assert calls == [(3, 7), (6, 7), (7, 7)]

    @pytest.mark.asyncio
    async def test_async_progress_callback_awaited(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        on_progress = AsyncMock()
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        await orchestrator.add_documents(
            _pending(4), create_embedding=True, batch_size=2, on_progress=on_progress
        )

        assert on_progress.await_count == 2
        on_progress.assert_awaited_with(4, 4)

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_abort(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        def _broken(processed: int, total: int) -> None:
            raise RuntimeError("listener exploded")

        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        added = await orchestrator.add_documents(
            _pending(2), create_embedding=True, on_progress=_broken
        )
        assert added == 2

    @pytest.mark.asyncio
    async def test_mixed_batch_only_embeds_pending(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        docs = [
            {"id": "ready", "content": "has vector", "embedding": [9.0, 9.0, 9.0]},
            {"id": "pending", "content": "needs vector"},
        ]

        await orchestrator.add_documents(docs, create_embedding=True)

        mock_embedding_provider.embed.assert_awaited_once()
        assert mock_embedding_provider.embed.await_args.args[0] == ["needs vector"]
        assert table.get("ready").embedding == (9.0, 9.0, 9.0)
        assert table.get("pending").embedding is not None
        assert [d.id for d in table.all_documents()] == ["ready", "pending"]

    @pytest.mark.asyncio
    async def test_empty_embedding_treated_as_pending(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        await orchestrator.add_documents(
            [{"id": "blank", "content": "needs vector", "embedding": []}], create_embedding=True
        )

        assert mock_embedding_provider.embed.await_args.args[0] == ["needs vector"]
        assert table.get("blank").embedding

    @pytest.mark.asyncio
    async def test_no_provider_call_when_all_complete(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        await orchestrator.add_documents(
            [VectorDocument(id="a", embedding=(1.0, 2.0))], create_embedding=True
        )
        mock_embedding_provider.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_input_is_noop(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        assert await orchestrator.add_documents([], create_embedding=True) == 0
        mock_embedding_provider.embed.assert_not_awaited()


# ======================================================================
# Validation (before any provider call)
# ======================================================================


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_id(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="index 1 must have a valid non-empty ID"):
            await orchestrator.add_documents(
                [{"id": "a", "content": "x"}, {"id": "  ", "content": "y"}],
                create_embedding=True,
            )
        mock_embedding_provider.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_within_batch(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(DuplicateIdError) as exc_info:
            await orchestrator.add_documents(
                [{"id": "a", "content": "x"}, {"id": "b", "content": "y"}, {"id": "a", "content": "z"}],
                create_embedding=True,
            )
        assert exc_info.value.first_index == 0
        assert exc_info.value.second_index == 2
        assert "indices 0 and 2" in str(exc_info.value)
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_duplicate_of_stored_document(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        table.insert(VectorDocument(id="a", embedding=(1.0, 2.0, 3.0)))
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(DuplicateIdError, match="already exists in the store"):
            await orchestrator.add_documents([{"id": "a", "content": "x"}], create_embedding=True)
        assert len(table) == 1

    @pytest.mark.asyncio
    async def test_missing_embedding_without_create(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="must have an embedding when create_embedding"):
            await orchestrator.add_documents([{"id": "a", "content": "x"}])

    @pytest.mark.asyncio
    async def test_blank_content_with_create(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="must have non-empty content"):
            await orchestrator.add_documents([{"id": "a", "content": "   "}], create_embedding=True)

    @pytest.mark.asyncio
    async def test_non_finite_embedding(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="invalid embedding values"):
            await orchestrator.add_documents([{"id": "a", "embedding": [1.0, float("inf")]}])

    @pytest.mark.asyncio
    async def test_supplied_embedding_dimension_mismatch(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(DimensionMismatchError):
            await orchestrator.add_documents(
                [{"id": "a", "embedding": [1.0, 2.0]}, {"id": "b", "embedding": [1.0, 2.0, 3.0]}]
            )
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_invalid_batch_size(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="batch_size"):
            await orchestrator.add_documents(_pending(1), create_embedding=True, batch_size=0)

    @pytest.mark.asyncio
    async def test_negative_delay(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="batch_delay_ms"):
            await orchestrator.add_documents(_pending(1), create_embedding=True, batch_delay_ms=-1)

    @pytest.mark.asyncio
    async def test_no_provider_configured(self, table: DocumentTable, sleep: AsyncMock) -> None:
        orchestrator = _orchestrator(table, None, sleep)
        with pytest.raises(ConfigurationError):
            await orchestrator.add_documents(_pending(1), create_embedding=True)


# ======================================================================
# Generated embeddings
# ======================================================================


class TestGeneratedEmbeddings:
    @pytest.mark.asyncio
    async def test_generated_dimension_must_match_store(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        table.insert(VectorDocument(id="existing", embedding=(1.0, 2.0)))
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(DimensionMismatchError, match=r"Generated embedding dimensions \(3\)"):
            await orchestrator.add_documents(_pending(2), create_embedding=True)
        assert len(table) == 1

    @pytest.mark.asyncio
    async def test_generated_must_match_supplied_in_same_batch(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        docs = [{"id": "ready", "embedding": [1.0, 2.0]}, {"id": "pending", "content": "x"}]

        with pytest.raises(DimensionMismatchError, match="inconsistent"):
            await orchestrator.add_documents(docs, create_embedding=True)
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_wrong_vector_count(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = None
        mock_embedding_provider.embed.return_value = [[1.0, 2.0]]
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(ProviderError, match="returned 1 embeddings for 2 texts"):
            await orchestrator.add_documents(_pending(2), create_embedding=True)

    @pytest.mark.asyncio
    async def test_inconsistent_generated_vectors(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = None
        mock_embedding_provider.embed.return_value = [[1.0, 2.0], [1.0, 2.0, 3.0]]
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(ProviderError, match="inconsistent dimensions"):
            await orchestrator.add_documents(_pending(2), create_embedding=True)

    @pytest.mark.asyncio
    async def test_failure_in_later_batch_writes_nothing(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = [
            [[1.0, 0.0]] * 2,
            ProviderError("backend down", provider_name="mock_embedding"),
        ]
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(ProviderError, match="backend down"):
            await orchestrator.add_documents(_pending(4), create_embedding=True, batch_size=2)
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = RuntimeError("socket closed")
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)

        with pytest.raises(ProviderError, match="Embedding batch 1/1 failed: socket closed") as exc_info:
            await orchestrator.add_documents(_pending(1), create_embedding=True)
        assert exc_info.value.provider_name == "mock_embedding"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


# ======================================================================
# Retry and timeout
# ======================================================================


class TestRetry:
    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_linear_backoff(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = [
            RateLimitError(),
            RateLimitError(),
            [[1.0, 2.0, 3.0]],
        ]
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep, max_retries=2)

        added = await orchestrator.add_documents(_pending(1), create_embedding=True)

        assert added == 1
        assert mock_embedding_provider.embed.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = RateLimitError("slow down")
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep, max_retries=1)

        with pytest.raises(RateLimitError, match="slow down"):
            await orchestrator.add_documents(_pending(1), create_embedding=True)
        assert mock_embedding_provider.embed.await_count == 2
        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_non_retryable_provider_error_not_retried(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        mock_embedding_provider.embed.side_effect = ProviderError("bad request")
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep, max_retries=3)

        with pytest.raises(ProviderError):
            await orchestrator.add_documents(_pending(1), create_embedding=True)
        assert mock_embedding_provider.embed.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_becomes_embedding_timeout_error(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        async def _hang(texts, model=None):
            await asyncio.Event().wait()

        mock_embedding_provider.embed.side_effect = _hang
        orchestrator = _orchestrator(
            table, mock_embedding_provider, sleep, embedding_timeout_s=0.01, max_retries=1
        )

        with pytest.raises(EmbeddingTimeoutError, match="timed out"):
            await orchestrator.add_documents(_pending(1), create_embedding=True)
        assert mock_embedding_provider.embed.await_count == 2


# ======================================================================
# Atomic write
# ======================================================================


class TestRollback:
    @pytest.mark.asyncio
    async def test_insert_failure_rolls_back_earlier_inserts(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        table.insert(VectorDocument(id="keep", embedding=(1.0, 1.0, 1.0)))
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        real_insert = table.insert
        inserted: list[str] = []

        def _flaky_insert(document: VectorDocument) -> VectorDocument:
            if len(inserted) == 2:
                raise RuntimeError("disk full")
            inserted.append(document.id)
            return real_insert(document)

        with patch.object(table, "insert", side_effect=_flaky_insert):
            with pytest.raises(RuntimeError, match="disk full"):
                await orchestrator.add_documents(_pending(4), create_embedding=True)

        assert [d.id for d in table.all_documents()] == ["keep"]


# ======================================================================
# Single-document add
# ======================================================================


class TestAddDocument:
    @pytest.mark.asyncio
    async def test_embeds_pending_document(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        stored = await orchestrator.add_document(
            {"id": "a", "content": "hello"}, create_embedding=True
        )
        assert stored.embedding is not None
        assert len(stored.embedding) == 3
        assert table.contains("a")

    @pytest.mark.asyncio
    async def test_replaces_existing_id(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        await orchestrator.add_document({"id": "a", "content": "v1", "embedding": [1.0, 0.0]})
        await orchestrator.add_document({"id": "a", "content": "v2", "embedding": [0.0, 1.0]})

        assert len(table) == 1
        assert table.get("a").content == "v2"

    @pytest.mark.asyncio
    async def test_pending_without_create_rejected(
        self, table: DocumentTable, mock_embedding_provider: MagicMock, sleep: AsyncMock
    ) -> None:
        orchestrator = _orchestrator(table, mock_embedding_provider, sleep)
        with pytest.raises(ValidationError, match="valid embedding"):
            await orchestrator.add_document({"id": "a", "content": "hello"})
        mock_embedding_provider.embed.assert_not_awaited()
