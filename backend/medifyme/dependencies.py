# medifyme/dependencies.py
#
# FastAPI dependencies that build the workflow objects around the shared
# store and gateway. Tests swap these out through `app.dependency_overrides`.

from fastapi import Depends

from .connections import ConnectionWorkflow
from .database import Store, get_store
from .enrichment import EnrichmentGateway, get_gateway
from .identity import IdentityResolver
from .submissions import SubmissionPipeline


def get_identity_resolver(store: Store = Depends(get_store)) -> IdentityResolver:
    return IdentityResolver(store)


def get_connection_workflow(store: Store = Depends(get_store)) -> ConnectionWorkflow:
    return ConnectionWorkflow(store)


def get_submission_pipeline(
    store: Store = Depends(get_store),
    gateway: EnrichmentGateway = Depends(get_gateway),
) -> SubmissionPipeline:
    return SubmissionPipeline(store, gateway)
