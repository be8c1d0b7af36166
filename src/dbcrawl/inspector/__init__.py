from typing import TYPE_CHECKING, Optional
from pydantic import BaseModel
from ..domain.models import ConnectionHealth, Dbms, HealthStatus
from .crawler import SchemaCrawler, SchemaFilter

if TYPE_CHECKING:
    from ..handler import RelationalDbmsHandler

class InspectionReport(BaseModel):
    health: ConnectionHealth
    dbms: Optional[Dbms] = None

class InspectorFacade:
    """
    Facade Pattern: health check first, metadata crawl only if it passes.
    """
    def __init__(self, handler: "RelationalDbmsHandler"):
        self._handler = handler

    def run_diagnostics(self, schema_filter: Optional[SchemaFilter] = None) -> InspectionReport:
        # 1. Check connection first (Fail Fast)
        health = self._handler.provider.check_health()
        if health.status != HealthStatus.SUCCESS:
            return InspectionReport(health=health, dbms=None)

        # 2. Crawl metadata only if connection is successful
        dbms = self._handler.read_schema_metadata(schema_filter)
        return InspectionReport(health=health, dbms=dbms)

__all__ = ["InspectionReport", "InspectorFacade", "SchemaCrawler"]
