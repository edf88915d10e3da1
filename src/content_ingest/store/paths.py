"""Document paths used by the ingestion core."""

from __future__ import annotations


def knowledge_docs(tenant_id: str) -> str:
    return f"businesses/{tenant_id}/knowledgeDocs"


def knowledge_doc(tenant_id: str, doc_id: str) -> str:
    return f"{knowledge_docs(tenant_id)}/{doc_id}"


def chunks(tenant_id: str, doc_id: str) -> str:
    return f"{knowledge_doc(tenant_id, doc_id)}/chunks"


def chunk(tenant_id: str, doc_id: str, text_hash: str) -> str:
    return f"{chunks(tenant_id, doc_id)}/{text_hash}"


def tenant_catalog(tenant_id: str) -> str:
    return f"businesses/{tenant_id}/catalogItems"


def catalog_jobs(market_id: str) -> str:
    return f"markets/{market_id}/catalogIngestJobs"


def catalog_job(market_id: str, job_id: str) -> str:
    return f"{catalog_jobs(market_id)}/{job_id}"


def proposals(listing_id: str) -> str:
    return f"listings/{listing_id}/ingestProposals"


def proposal(listing_id: str, proposal_id: str) -> str:
    return f"{proposals(listing_id)}/{proposal_id}"


def listing_item(listing_id: str, kind: str, item_id: str) -> str:
    return f"listings/{listing_id}/{kind}/{item_id}"
