import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from examsim.core.config import settings
from examsim.schemas.exam import Section, Topic
from examsim.services.credential_pool import CredentialPool
from examsim.services.gemini_health import gemini_healthcheck
from examsim.services.question_supply import SupplyOrchestrator

pool = CredentialPool.from_settings()

print("GEMINI_BASE_URL =", settings.gemini_base_url)
print("GEMINI_MODEL =", settings.gemini_model)
print("GEMINI_API_KEYS count =", len(pool))
print("SUPPLY_BATCH_SIZE =", settings.supply_batch_size, "SUPPLY_MAX_BATCHES =", settings.supply_max_batches)

ok, meta = gemini_healthcheck(pool)
print("healthcheck ok =", ok)
print("healthcheck meta =", meta)

topic = Topic(id="indian-polity", name="Indian Polity", subject="Polity", section=Section.general_knowledge)
report = asyncio.run(SupplyOrchestrator.from_settings(pool=pool).run(topic, 6))
print("source =", report.source, "yielded =", report.yielded, "of", report.requested)
print("failed batches =", report.failed_batches)
if report.questions:
    print("sample:", report.questions[0].text[:200])
