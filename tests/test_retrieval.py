import pytest

from app.retrieval import RESOURCE_CREATED, RetrievalService

from conftest import FailingEmbedder


def test_add_resource_embeds_all_chunks_in_one_batch(retrieval, embedder, knowledge_store):
    result = retrieval.add_resource("Paris is the capital of France. Berlin is in Germany.")

    assert result == RESOURCE_CREATED
    assert embedder.batch_calls == [["Paris is the capital of France", " Berlin is in Germany"]]
    assert len(knowledge_store) == 2


def test_round_trip_finds_relevant_chunk(retrieval):
    retrieval.add_resource("Paris is the capital of France.")
    retrieval.add_resource("The weather in Berlin is rainy.")

    results = retrieval.get_information("What is the capital of France?")

    assert results
    assert "Paris" in results[0]["content"]
    assert results[0]["similarity"] > 0.5
    assert all("Berlin" not in r["content"] for r in results)


def test_get_information_embeds_question_once(retrieval, embedder):
    retrieval.get_information("capital of France?")
    assert embedder.one_calls == ["capital of France?"]


def test_nothing_relevant_returns_empty_list(retrieval):
    retrieval.add_resource("The weather in Berlin is rainy.")
    assert retrieval.get_information("What is the capital of France?") == []


def test_results_are_limited_to_top_k(embedder, knowledge_store):
    service = RetrievalService(embedder, knowledge_store, top_k=2, min_similarity=0.5)
    service.add_resource("Paris. Paris again. Paris once more. Paris at last.")

    assert len(service.get_information("Paris")) == 2


def test_failed_embedding_inserts_nothing(knowledge_store):
    service = RetrievalService(FailingEmbedder(), knowledge_store)

    with pytest.raises(RuntimeError, match="embedding service down"):
        service.add_resource("Paris is the capital of France. Berlin is in Germany.")
    assert len(knowledge_store) == 0


def test_defaults_come_from_settings(embedder, knowledge_store):
    service = RetrievalService(embedder, knowledge_store)
    assert service.top_k == 4
    assert service.min_similarity == 0.5
