# lms/api/endpoints/metrics.py

import os
import socket
import time

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from lms.api.deps import get_db_session
from lms.core.config import settings
from lms.core.database import test_connection
from lms.core.rbac import require_admin
from lms.models.user import User
from lms.models.course import Course
from lms.models.content_arrangement import ContentArrangement
from lms.models.audit import AuditLog
from lms.models.enums import ArrangementStatus
from lms.services.cache_service import ANALYTICS_PREFIX

router = APIRouter(
    prefix="/api/metrics",
    tags=["System & Metrics"]
)

START_TIME = time.time()


# ===================================================================
# 1. GENERAL SYSTEM HEALTH
# ===================================================================
@router.get("/health")
async def system_health():
    uptime_seconds = int(time.time() - START_TIME)

    try:
        await test_connection()
        db_status = "Connected"
    except Exception as e:
        logger.error(f"Health check database ping failed: {e}")
        db_status = "Error"

    smtp_status = "Not Configured"
    if settings.SMTP_HOST:
        try:
            sock = socket.create_connection((settings.SMTP_HOST, settings.SMTP_PORT), timeout=2)
            sock.close()
            smtp_status = "Connected"
        except OSError:
            smtp_status = "Error"

    return {
        "status": "Online",
        "uptime_seconds": uptime_seconds,
        "database": db_status,
        "smtp_server": smtp_status,
        "environment": settings.ENV,
        "hostname": os.environ.get("HOSTNAME"),
    }


# ===================================================================
# 2. ADMIN DASHBOARD STATS
# ===================================================================
@router.get("/dashboard-stats")
async def get_dashboard_stats(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin),
):
    role_res = await session.execute(select(User.role, func.count(User.id)).group_by(User.role))
    users_by_role = {role.value: count for role, count in role_res.all()}

    status_res = await session.execute(
        select(ContentArrangement.status, func.count(ContentArrangement.id))
        .group_by(ContentArrangement.status)
    )
    arrangements = {s.value: count for s, count in status_res.all()}

    courses_total = (await session.execute(select(func.count(Course.id)))).scalar() or 0
    courses_launched = (await session.execute(
        select(func.count(Course.id)).where(Course.is_launched == True)  # noqa: E712
    )).scalar() or 0

    logs_res = await session.execute(select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(5))

    return {
        "metrics": {
            "users": users_by_role,
            "courses": courses_total,
            "launched_courses": courses_launched,
            "arrangements": {s.value: arrangements.get(s.value, 0) for s in ArrangementStatus},
        },
        "recent_activity": logs_res.scalars().all(),
    }


# ===================================================================
# 3. REDIS STATS
# ===================================================================
@router.get("/redis-stats")
async def get_redis_statistics(
    _: User = Depends(require_admin),
):
    if not settings.REDIS_URL:
        return {"status": "Disabled", "message": "Redis is not configured."}

    client = None
    try:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2
        )

        info = await client.info()
        dbsize = await client.dbsize()

        cached = 0
        async for _key in client.scan_iter(match=f"{ANALYTICS_PREFIX}*", count=100):
            cached += 1

        active_limits = []
        async for key in client.scan_iter(match="LIMITER/*", count=100):
            active_limits.append(key)
            if len(active_limits) >= 20:
                break

        return {
            "status": "Online",
            "metrics": {
                "redis_version": info.get("redis_version"),
                "uptime_days": info.get("uptime_in_days"),
                "clients": {
                    "connected": info.get("connected_clients"),
                    "blocked": info.get("blocked_clients")
                },
                "memory": {
                    "used": info.get("used_memory_human"),
                    "peak": info.get("used_memory_peak_human"),
                },
                "db": {
                    "total_keys": dbsize,
                    "cached_analytics": cached,
                    "active_rate_limit_windows": len(active_limits),
                }
            }
        }

    except redis.ConnectionError:
        return {"status": "Offline", "detail": "Redis server unreachable."}
    except Exception as e:
        logger.error(f"Redis stats failed: {e}")
        return {"status": "Error", "detail": str(e)}
    finally:
        if client:
            await client.aclose()


# ===================================================================
# 4. CLEAR CACHE
# ===================================================================
@router.post("/clear-cache")
async def clear_cache(
    scope: str = "analytics",
    _: User = Depends(require_admin),
):
    """
    scope='analytics': cached dashboard numbers.
    scope='rate_limits': active throttles.
    """
    if not settings.REDIS_URL:
        raise HTTPException(status_code=400, detail="Redis not configured.")

    patterns = {"analytics": f"{ANALYTICS_PREFIX}*", "rate_limits": "LIMITER/*"}
    if scope not in patterns:
        raise HTTPException(status_code=400, detail=f"Unknown scope '{scope}'")

    client = None
    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        count = 0
        async for key in client.scan_iter(match=patterns[scope]):
            await client.delete(key)
            count += 1
        return {"status": "Success", "message": f"Cleared {count} keys for scope: {scope}"}

    except Exception as e:
        logger.error(f"Cache Clear Error: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear cache.")
    finally:
        if client:
            await client.aclose()
