import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from a .env file in the working directory
load_dotenv()


def _split(value: str):
    return [v.strip() for v in value.split(",") if v.strip()]


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "15"))

# When set, the client asks a remote /api/eval handler instead of calling the model itself
EVAL_URL = os.getenv("EVAL_URL")

# National databases first, then the global one
OFF_ENDPOINTS = _split(os.getenv(
    "OFF_ENDPOINTS",
    "https://sk.openfoodfacts.org,https://cz.openfoodfacts.org,https://world.openfoodfacts.org",
))
OFF_TIMEOUT = float(os.getenv("OFF_TIMEOUT", "5"))
OFF_USER_AGENT = os.getenv("OFF_USER_AGENT", "IntoleScan/0.1 (+intolerance-scanner)")
INGREDIENT_LANGS = _split(os.getenv("INGREDIENT_LANGS", "sk,cs,en"))
NOTES_LANG = os.getenv("NOTES_LANG", "en")

# Local persisted state (profile.json + history.json)
_data_dir = os.getenv("INTOLESCAN_DATA_DIR")
DATA_DIR = Path(_data_dir).expanduser() if _data_dir else Path.home() / ".intolescan"
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "100"))

ALLOW_ORIGINS = _split(os.getenv(
    "ALLOW_ORIGINS",
    "capacitor://localhost,http://localhost,http://127.0.0.1,"
    "https://radka-celiakia.vercel.app,https://intolerancies.vercel.app",
))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
