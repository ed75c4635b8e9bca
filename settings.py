from decouple import Csv, config

# Anti-detection timing (seconds)
MIN_DELAY = config('MIN_DELAY', default=2.0, cast=float)
MAX_DELAY = config('MAX_DELAY', default=8.0, cast=float)
STRATEGY_DELAY_MIN = config('STRATEGY_DELAY_MIN', default=1.0, cast=float)
STRATEGY_DELAY_MAX = config('STRATEGY_DELAY_MAX', default=3.0, cast=float)

MAX_REQUESTS_PER_MINUTE = config('MAX_REQUESTS_PER_MINUTE', default=3, cast=int)
RATE_LIMIT_WINDOW = config('RATE_LIMIT_WINDOW', default=60, cast=int)
SESSION_TIMEOUT = config('SESSION_TIMEOUT', default=30 * 60, cast=int)

MAX_RETRIES = config('MAX_RETRIES', default=3, cast=int)
RETRY_DELAY = config('RETRY_DELAY', default=5.0, cast=float)

USE_PROXIES = config('USE_PROXIES', default=False, cast=bool)
PROXY_LIST = config('PROXY_LIST', default='', cast=Csv())

BROWSER_FALLBACK = config('BROWSER_FALLBACK', default=True, cast=bool)
BROWSER_TIMEOUT = config('BROWSER_TIMEOUT', default=30, cast=int)

CLOUDINARY_CLOUD_NAME = config('CLOUDINARY_CLOUD_NAME', default='')
CLOUDINARY_API_KEY = config('CLOUDINARY_API_KEY', default='')
CLOUDINARY_API_SECRET = config('CLOUDINARY_API_SECRET', default='')
CLOUDINARY_FOLDER = config('CLOUDINARY_FOLDER', default='instagram-videos')

PORT = config('PORT', default=5000, cast=int)
LOG_LEVEL = config('LOG_LEVEL', default='INFO')

# Reverse proxies in front of the app whose X-Forwarded-For is trusted
PROXY_FIX_HOPS = config('PROXY_FIX_HOPS', default=0, cast=int)
