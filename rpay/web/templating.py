from pathlib import Path

from starlette.templating import Jinja2Templates

from rpay.core.config import settings
from rpay.schemas.deposits import TIMESTAMP_FORMAT


TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _timestamp(value) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def _rupiah(value) -> str:
    return f"Rp {int(value or 0):,}".replace(",", ".")


templates.env.filters["timestamp"] = _timestamp
templates.env.filters["rupiah"] = _rupiah
templates.env.globals["app_name"] = settings.app_name
