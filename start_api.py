"""
Start the Stock Scraper API server
"""
import uvicorn
from dotenv import load_dotenv

# Load environment variables before settings are resolved
load_dotenv()

from stock_scraper.api.app import app  # noqa: E402,F401
from stock_scraper.core.config import get_settings  # noqa: E402

if __name__ == "__main__":
    settings = get_settings()
    print("\n" + "=" * 60)
    print("Starting Stock Scraper API Server")
    print("=" * 60)
    print("URL: http://localhost:8000")
    print("Docs: http://localhost:8000/docs")
    print(f"Default search mode: {settings.default_search_mode.value}")
    print("=" * 60 + "\n")

    uvicorn.run(
        "start_api:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info"
    )
