"""User-facing Persian messages shown by the player and upload forms."""

# Live stream
STREAM_UNAVAILABLE = "پخش زنده در حال حاضر در دسترس نیست"
STREAM_PLAYBACK_ERROR = "خطا در پخش ویدیو. لطفاً دوباره تلاش کنید."
STREAM_UNSUPPORTED = "مرورگر شما از پخش زنده پشتیبانی نمی‌کند."
STREAM_ENGINE_LOAD_ERROR = "خطا در بارگذاری پخش زنده."

# Upload validation
NO_FILE_SELECTED = "فایلی انتخاب نشده است"
INVALID_VIDEO_TYPE = "لطفاً یک فایل ویدیویی معتبر انتخاب کنید"
INVALID_IMAGE_TYPE = "لطفاً یک فایل تصویری معتبر انتخاب کنید"
VIDEO_TOO_LARGE = "حجم فایل نباید بیشتر از {max_mb} مگابایت باشد"
IMAGE_TOO_LARGE = "حجم تصویر نباید بیشتر از {max_mb} مگابایت باشد"

# Upload transport
UPLOAD_FAILED = "خطا در آپلود فایل: {reason}"
UNKNOWN_ERROR = "خطای نامشخص"
UNSUPPORTED_FILE_TYPE = "نوع فایل پشتیبانی نمی‌شود"
