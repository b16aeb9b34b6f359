import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> None:
    host = os.environ.get("API_HOST", "0.0.0.0")
    # PORT is what most PaaS hosts inject.
    port = int(os.environ.get("API_PORT") or os.environ.get("PORT") or "8000")
    print(f"MediNova is running on port: {port}")
    uvicorn.run("medinova.api.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
