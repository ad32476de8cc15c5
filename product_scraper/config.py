"""Global constants, regular expressions, and runtime settings."""

import os
import re
from dataclasses import dataclass
from pathlib import Path

UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

# Injected before any page script runs.
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => %s });
window.chrome = window.chrome || { runtime: {} };
"""

EN_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}
ZH_HEADERS = {
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

WAIT_STRATEGIES = ("networkidle", "domcontentloaded", "load")
TRANSIENT_NAV_MARKERS = (
    "err_empty_response",
    "net::err",
    "connection closed",
    "connection reset",
    "target closed",
)

BROWSERBASE_API_URL = "https://api.browserbase.com"

TAOBAO_DOMAINS = ("taobao.com", "tmall.com")
TAOBAO_HOME_URL = "https://www.taobao.com/"
TAOBAO_LOGIN_URL = "https://login.taobao.com/member/login.jhtml"
TAOBAO_ITEM_URL = "https://item.taobao.com/item.htm?id={id}"
TAOBAO_AUTH_COOKIE_NAMES = ("_tb_token_", "_m_h5_tk", "_umid", "cookie2", "l", "isg")
AMAZON_DOMAINS = ("amazon.com", "amazon.in")

ITEM_ID_RE = re.compile(r"(?:[?&]id=|/item/|/detail/)(\d{10,})", re.IGNORECASE)
JSON_ITEM_ID_RE = re.compile(r'"(?:nid|item_id|itemId)"\s*:\s*"?(\d{6,})"?')
ASIN_RE = re.compile(r"/(?:dp|gp/product)/([A-Z0-9]{10})", re.IGNORECASE)
PRICE_RE = re.compile(r"(?<![\d.])(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?(?!\d)")
CURRENCY_PRICE_RE = re.compile(r"[$₹¥￥]\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")
JSON_PRICE_RE = re.compile(
    r'"(?:price|promotionPrice|reservePrice|skuPrice|salePrice)"\s*:\s*"?(?P<v>\d{1,6}(?:\.\d{1,2})?)"?',
    re.IGNORECASE,
)
SHOP_NAME_RE = re.compile(r'"(?:shopName|sellerNick)"\s*:\s*"(?P<name>[^"]+)"')
BRAND_RE = re.compile(r'"(?:brandName|brand)"\s*:\s*"(?P<brand>[^"]+)"', re.IGNORECASE)
HTML_TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
TITLE_SITE_SUFFIX_RE = re.compile(
    r"(?:[-_｜|·•\s]*(?:tmall\.com天猫|taobao\.com淘宝网|tmall\.com|taobao\.com|天猫|淘宝网))+\s*$",
    re.IGNORECASE,
)


def load_simple_dotenv(path: Path) -> None:
    if not path.exists():
        return
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return
    for line in raw.splitlines():
        item = line.strip()
        if not item or item.startswith("#") or "=" not in item:
            continue
        key, value = item.split("=", 1)
        env_key = key.strip().lstrip("\ufeff")
        env_val = value.strip().strip('"').strip("'")
        if env_key and env_key not in os.environ:
            os.environ[env_key] = env_val


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int) -> int:
    try:
        return max(minimum, int(os.getenv(name, str(default))))
    except ValueError:
        return default


def _env_float(name: str, default: float, minimum: float) -> float:
    try:
        return max(minimum, float(os.getenv(name, str(default))))
    except ValueError:
        return default


@dataclass
class ScraperSettings:
    use_remote_session: bool = False
    browserbase_api_key: str = ""
    browserbase_project_id: str = ""
    browserbase_api_url: str = BROWSERBASE_API_URL
    headless: bool = True
    executable_path: str = ""
    cdp_url: str = ""
    navigation_timeout_ms: int = 60_000
    navigation_attempts: int = 3
    navigation_backoff_sec: float = 5.0
    challenge_grace_sec: float = 10.0
    login_timeout_sec: int = 120
    login_poll_interval_sec: float = 2.0
    enrich_limit: int = 20
    enrich_delay_sec: float = 1.0
    scrape_timeout_sec: float = 300.0
    log_level: str = "INFO"

    @property
    def remote_enabled(self) -> bool:
        return bool(
            self.use_remote_session
            and self.browserbase_api_key
            and self.browserbase_project_id
        )

    @classmethod
    def from_env(cls) -> "ScraperSettings":
        return cls(
            use_remote_session=_env_bool("USE_BROWSERBASE", False),
            browserbase_api_key=_env_str("BROWSERBASE_API_KEY"),
            browserbase_project_id=_env_str("BROWSERBASE_PROJECT_ID"),
            browserbase_api_url=_env_str("BROWSERBASE_API_URL", BROWSERBASE_API_URL),
            headless=_env_bool("SCRAPER_HEADLESS", True),
            executable_path=_env_str("CUSTOM_BROWSER_PATH")
            or _env_str("PUPPETEER_EXECUTABLE_PATH"),
            cdp_url=_env_str("PLAYWRIGHT_CDP_URL"),
            navigation_timeout_ms=_env_int("SCRAPER_NAV_TIMEOUT_MS", 60_000, 5_000),
            navigation_attempts=_env_int("SCRAPER_NAV_ATTEMPTS", 3, 1),
            navigation_backoff_sec=_env_float("SCRAPER_NAV_BACKOFF_SEC", 5.0, 0.0),
            challenge_grace_sec=_env_float("SCRAPER_CHALLENGE_GRACE_SEC", 10.0, 0.0),
            login_timeout_sec=_env_int("TAOBAO_LOGIN_TIMEOUT_SEC", 120, 10),
            login_poll_interval_sec=_env_float("TAOBAO_LOGIN_POLL_SEC", 2.0, 0.5),
            enrich_limit=_env_int("AMAZON_ENRICH_LIMIT", 20, 0),
            enrich_delay_sec=_env_float("AMAZON_ENRICH_DELAY_SEC", 1.0, 0.0),
            scrape_timeout_sec=_env_float("SCRAPER_TIMEOUT_SEC", 300.0, 10.0),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
