"""Engine wiring — one object holding every engine service over one store.

Usage:
    from schoolhub.engine.container import build_engine

    engine = build_engine(InMemoryEntityStore(), BcryptCredentialService(4), settings)
    await engine.visibility.visible_videos(student_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from schoolhub.config import Settings
from schoolhub.engine.cascade import CascadeDeleter
from schoolhub.engine.catalog import CatalogService
from schoolhub.engine.exams import ExamService
from schoolhub.engine.graph import AssignmentGraph
from schoolhub.engine.importer import BulkImporter
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.engine.ranking import RankingEngine
from schoolhub.engine.tenants import TenantService
from schoolhub.engine.visibility import VisibilityResolver
from schoolhub.hooks.interfaces import CredentialService, EntityStore


@dataclass(frozen=True)
class Engine:
    store: EntityStore
    resolver: InheritanceResolver
    graph: AssignmentGraph
    visibility: VisibilityResolver
    importer: BulkImporter
    cascade: CascadeDeleter
    ranking: RankingEngine
    tenants: TenantService
    catalog: CatalogService
    exams: ExamService


def build_engine(
    store: EntityStore, credentials: CredentialService, settings: Settings
) -> Engine:
    resolver = InheritanceResolver(store)
    graph = AssignmentGraph(store, resolver)
    return Engine(
        store=store,
        resolver=resolver,
        graph=graph,
        visibility=VisibilityResolver(store, resolver, graph),
        importer=BulkImporter(store, resolver, credentials, settings),
        cascade=CascadeDeleter(store),
        ranking=RankingEngine(store, resolver, graph),
        tenants=TenantService(store, resolver, graph, credentials, settings),
        catalog=CatalogService(store),
        exams=ExamService(store, resolver, graph),
    )
