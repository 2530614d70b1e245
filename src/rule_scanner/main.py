"""FastAPI application exposing the rule engine."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import EngineConfig
from .engine import RuleEngine, initialize_rule_engine
from .models import RuleCategory, ScanReport, ScanRequest, Severity

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def get_engine(request: Request) -> RuleEngine:
    """Engine attached to the application, created on first use."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = initialize_rule_engine(EngineConfig.from_env())
        request.app.state.engine = engine
    return engine


def create_app(engine: RuleEngine | None = None) -> FastAPI:
    """Build the API around an engine; one is loaded from the environment if omitted."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            app.state.engine = initialize_rule_engine(EngineConfig.from_env())
        yield

    app = FastAPI(
        title="Rule Scanner",
        description="Pattern-based vulnerability scanning with provenance-aware triage",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    # CORS - allow common development origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://localhost:8000",
        ],
        allow_methods=["POST", "GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/rules")
    async def list_rules(engine: RuleEngine = Depends(get_engine)):
        """All effective rules."""
        rules = engine.store.get_rules()
        return {"count": len(rules), "rules": rules}

    @app.get("/rules/stats")
    async def rule_stats(engine: RuleEngine = Depends(get_engine)):
        """Counts of effective rules by category, severity and language."""
        return {"stats": engine.store.get_stats()}

    @app.get("/rulesets")
    async def list_rule_sets(engine: RuleEngine = Depends(get_engine)):
        """Metadata for every loaded rule set."""
        rule_sets = engine.store.get_rule_sets()
        return {"count": len(rule_sets), "rule_sets": rule_sets}

    @app.get("/rules/category/{category}")
    async def rules_by_category(category: RuleCategory, engine: RuleEngine = Depends(get_engine)):
        rules = engine.store.get_rules_by_category(category)
        return {"category": category.value, "count": len(rules), "rules": rules}

    @app.get("/rules/severity/{severity}")
    async def rules_by_severity(severity: Severity, engine: RuleEngine = Depends(get_engine)):
        rules = engine.store.get_rules_by_severity(severity)
        return {"severity": severity.value, "count": len(rules), "rules": rules}

    @app.get("/rules/{rule_id}")
    async def get_rule(rule_id: str, engine: RuleEngine = Depends(get_engine)):
        rule = engine.store.get_rule(rule_id)
        if rule is None:
            raise HTTPException(status_code=404, detail="Rule not found")
        return {"rule": rule, "active": engine.store.is_active(rule_id)}

    @app.post("/rules/{rule_id}/enable")
    async def enable_rule(rule_id: str, engine: RuleEngine = Depends(get_engine)):
        if not engine.store.enable_rule(rule_id):
            raise HTTPException(status_code=404, detail="Rule not found")
        logger.info(f"Rule {rule_id} enabled")
        return {"message": f"Rule {rule_id} enabled"}

    @app.post("/rules/{rule_id}/disable")
    async def disable_rule(rule_id: str, engine: RuleEngine = Depends(get_engine)):
        if not engine.store.disable_rule(rule_id):
            raise HTTPException(status_code=404, detail="Rule not found")
        logger.info(f"Rule {rule_id} disabled")
        return {"message": f"Rule {rule_id} disabled"}

    @app.post("/scan", response_model=ScanReport)
    async def scan(request: ScanRequest, engine: RuleEngine = Depends(get_engine)) -> ScanReport:
        """
        Scan a batch of files with the effective rules.

        - **files**: list of {path, content, language, line_count}
        """
        if not request.files:
            raise HTTPException(status_code=400, detail="No files provided")

        try:
            logger.info(f"Scanning {len(request.files)} files")
            return await asyncio.to_thread(engine.analyze, request.files)
        except Exception as e:
            logger.error(f"Scan failed: {e}")
            raise HTTPException(status_code=500, detail=f"Scan failed: {str(e)}")

    return app


app = create_app()
