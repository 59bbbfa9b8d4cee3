import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import clickhouse_connect

from uptime_timeline.core.config import settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.models import RegionalAgent, ServiceSnapshot

logger = get_logger("clickhouse_client")

DEFAULT_COLLECTION = "uptime_data"
_COLLECTIONS = {
    "ping": "ping_data",
    "icmp": "ping_data",
    "dns": "dns_data",
    "tcp": "tcp_data",
}


def collection_for(service_type: Optional[str]) -> str:
    if not service_type:
        return DEFAULT_COLLECTION
    return _COLLECTIONS.get(service_type.lower(), DEFAULT_COLLECTION)


def _rows(result) -> List[Dict[str, Any]]:
    columns = list(result.column_names)
    return [dict(zip(columns, row)) for row in result.result_rows]


class ClickHouseUptimeReader:
    """Reads check history, regional agents and service records.

    ``clickhouse_connect`` is blocking, so every query runs in a worker thread;
    that keeps concurrent per-source fetches concurrent.
    """

    def __init__(self, client=None):
        self.client = client or clickhouse_connect.get_client(
            host=settings.clickhouse_host,
            port=settings.clickhouse_port,
            database=settings.clickhouse_db,
            username=settings.clickhouse_user,
            password=settings.clickhouse_password,
            interface="http",
        )

    async def query(
        self,
        service_id: str,
        limit: int,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        source_hint: Optional[RegionalAgent] = None,
        service_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(
            self._query_history,
            service_id,
            limit,
            start_time,
            end_time,
            source_hint,
            service_type,
        )

    def _query_history(
        self,
        service_id: str,
        limit: int,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
        source_hint: Optional[RegionalAgent],
        service_type: Optional[str],
    ) -> List[Dict[str, Any]]:
        table = collection_for(service_type)
        where = ["service_id = %(service_id)s"]
        params: Dict[str, Any] = {"service_id": service_id, "limit": limit}

        if source_hint is None:
            where.append("region_name = ''")
        else:
            where.append("region_name = %(region_name)s")
            where.append("agent_id = %(agent_id)s")
            params["region_name"] = source_hint.region_name
            params["agent_id"] = source_hint.agent_id

        # Either bound may be open
        if start_time is not None:
            where.append("timestamp >= %(start_time)s")
            params["start_time"] = start_time
        if end_time is not None:
            where.append("timestamp <= %(end_time)s")
            params["end_time"] = end_time

        query = f"""
        SELECT
            id,
            service_id,
            timestamp,
            status,
            response_time,
            region_name,
            agent_id
        FROM {table}
        WHERE {" AND ".join(where)}
        ORDER BY timestamp DESC
        LIMIT %(limit)s
        """

        try:
            records = _rows(self.client.query(query, parameters=params))
        except Exception as e:
            logger.error(
                "uptime_history_query_failed",
                extra={"service_id": service_id, "table": table, "error": str(e)},
            )
            raise

        logger.debug(
            "uptime_history_fetched",
            extra={
                "service_id": service_id,
                "table": table,
                "count": len(records),
                "regional": source_hint is not None,
            },
        )
        return records

    async def online_regional_agents(self) -> List[RegionalAgent]:
        return await asyncio.to_thread(self._query_agents)

    def _query_agents(self) -> List[RegionalAgent]:
        query = """
        SELECT region_name, agent_id, connection
        FROM regional_service
        WHERE connection = 'online'
        ORDER BY region_name, agent_id
        """
        result = self.client.query(query)
        return [RegionalAgent(**row) for row in _rows(result)]

    async def get_service(self, service_id: str) -> Optional[ServiceSnapshot]:
        return await asyncio.to_thread(self._query_service, service_id)

    def _query_service(self, service_id: str) -> Optional[ServiceSnapshot]:
        query = """
        SELECT
            id,
            name,
            service_type,
            status,
            response_time,
            last_checked,
            heartbeat_interval
        FROM services
        WHERE id = %(service_id)s
        LIMIT 1
        """
        rows = _rows(self.client.query(query, parameters={"service_id": service_id}))
        if not rows:
            return None
        row = rows[0]
        return ServiceSnapshot(
            service_id=str(row["id"]),
            name=row.get("name") or "",
            service_type=row.get("service_type") or "http",
            status=row.get("status") or "paused",
            response_time_ms=int(row.get("response_time") or 0),
            last_checked=row.get("last_checked"),
            interval_seconds=int(
                row.get("heartbeat_interval") or settings.default_check_interval_seconds
            ),
        )

    def close(self):
        try:
            self.client.close()
        except Exception as e:
            logger.warning("clickhouse_close_failed", extra={"error": str(e)})

    async def ping(self) -> bool:
        return bool(await asyncio.to_thread(self.client.ping))
