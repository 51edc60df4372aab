"""
Internationalization (i18n) module for the expiry monitor.

Provides translations for all operator-facing messages in Chinese (zh) and
English (en). Chinese is the default, matching the original operator text
of the Telegram notifications.
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"zh", "en"})
DEFAULT_LANGUAGE = "zh"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Notification headings
    "notification.expiring_title": {
        "zh": "🚨 <b>域名到期提醒</b> 🚨",
        "en": "🚨 <b>Domain Expiry Reminder</b> 🚨",
    },
    "notification.expired_title": {
        "zh": "🚫 <b>域名已过期提醒</b> 🚫",
        "en": "🚫 <b>Expired Domain Reminder</b> 🚫",
    },
    "notification.preview_expiring_title": {
        "zh": "🚨 <b>域名到期测试通知</b> 🚨",
        "en": "🚨 <b>Domain Expiry Test Notification</b> 🚨",
    },
    "notification.preview_expired_title": {
        "zh": "🚫 <b>域名已过期测试通知</b> 🚫",
        "en": "🚫 <b>Expired Domain Test Notification</b> 🚫",
    },
    "notification.preview_expiring_intro": {
        "zh": "这是一条测试通知，用于预览域名到期提醒的格式：",
        "en": "This is a test notification previewing the expiry reminder format:",
    },
    "notification.preview_expired_intro": {
        "zh": "这是一条测试通知，用于预览域名已过期提醒的格式：",
        "en": "This is a test notification previewing the expired reminder format:",
    },
    "notification.test_message": {
        "zh": "这是一条来自域名监控系统的测试通知，如果您收到此消息，表示Telegram通知配置成功！",
        "en": (
            "This is a test notification from the domain monitor. If you can "
            "read it, Telegram notifications are configured correctly!"
        ),
    },

    # Entry field labels
    "field.domain": {
        "zh": "域名",
        "en": "Domain",
    },
    "field.registrar": {
        "zh": "注册厂商",
        "en": "Registrar",
    },
    "field.days_left": {
        "zh": "剩余时间",
        "en": "Time left",
    },
    "field.expiry_date": {
        "zh": "到期日期",
        "en": "Expiry date",
    },
    "field.renew_link": {
        "zh": "点击续期",
        "en": "Renew",
    },
    "field.days_value": {
        "zh": "{days} 天",
        "en": "{days} days",
    },
    "field.renew_link_missing": {
        "zh": "未设置续期链接",
        "en": "no renew link set",
    },

    # Remaining time
    "duration.year": {
        "zh": "{count}年",
        "en": "{count} year",
    },
    "duration.years": {
        "zh": "{count}年",
        "en": "{count} years",
    },
    "duration.month": {
        "zh": "{count}个月",
        "en": "{count} month",
    },
    "duration.months": {
        "zh": "{count}个月",
        "en": "{count} months",
    },
    "duration.day": {
        "zh": "{count}天",
        "en": "{count} day",
    },
    "duration.days": {
        "zh": "{count}天",
        "en": "{count} days",
    },
    "duration.separator": {
        "zh": "",
        "en": " ",
    },

    # WHOIS query validation
    "validation.empty_input": {
        "zh": "域名参数不能为空",
        "en": "The domain parameter must not be empty",
    },
    "validation.idna_error": {
        "zh": "域名编码失败",
        "en": "The domain could not be IDNA-encoded",
    },
    "validation.malformed": {
        "zh": "域名格式不正确",
        "en": "The domain format is invalid",
    },
    "validation.missing_suffix": {
        "zh": "请输入完整的域名（如：example.com）",
        "en": "Please enter a full domain (e.g. example.com)",
    },
    "validation.subdomain_not_allowed": {
        "zh": "只能查询一级域名，不支持二级域名查询",
        "en": "Only apex domains can be queried, subdomains are not supported",
    },
    "validation.invalid_request": {
        "zh": "请求格式不正确",
        "en": "The request body is invalid",
    },
    "error.whois_failed": {
        "zh": "WHOIS查询失败: {error}",
        "en": "WHOIS lookup failed: {error}",
    },

    # Test notification results and errors
    "result.test_sent": {
        "zh": "测试通知已发送",
        "en": "Test notification sent",
    },
    "error.telegram_disabled": {
        "zh": "Telegram通知未启用",
        "en": "Telegram notifications are not enabled",
    },
    "error.missing_bot_token": {
        "zh": "未配置Telegram机器人Token",
        "en": "Telegram bot token is not configured",
    },
    "error.missing_chat_id": {
        "zh": "未配置Telegram聊天ID",
        "en": "Telegram chat id is not configured",
    },
    "error.test_failed": {
        "zh": "测试通知失败: {error}",
        "en": "Test notification failed: {error}",
    },

    # CLI output
    "cli.check_nothing": {
        "zh": "没有需要通知的域名",
        "en": "No domains need a notification",
    },
    "cli.check_summary": {
        "zh": "即将到期: {expiring}，已过期: {expired}",
        "en": "Expiring: {expiring}, expired: {expired}",
    },
    "cli.check_notified": {
        "zh": "已发送Telegram通知",
        "en": "Telegram notification sent",
    },
    "cli.check_disabled": {
        "zh": "Telegram通知未启用，未发送通知",
        "en": "Telegram notifications are disabled, nothing was sent",
    },
    "cli.check_failed": {
        "zh": "检查失败: {error}",
        "en": "Check failed: {error}",
    },
    "cli.daemon_started": {
        "zh": "定时检查已启动 (cron: {cron})",
        "en": "Scheduled checks started (cron: {cron})",
    },
    "cli.daemon_stopped": {
        "zh": "定时检查已停止",
        "en": "Scheduled checks stopped",
    },
    "cli.unregistered": {
        "zh": "{domain} 未注册",
        "en": "{domain} is not registered",
    },
    "cli.config_created": {
        "zh": "已创建配置文件: {path}",
        "en": "Created configuration file: {path}",
    },
    "cli.config_exists": {
        "zh": "配置文件已存在: {path}",
        "en": "Configuration file already exists: {path}",
    },
    "cli.config_valid": {
        "zh": "配置有效",
        "en": "Configuration is valid",
    },
    "cli.config_invalid": {
        "zh": "配置无效: {error}",
        "en": "Configuration is invalid: {error}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'field.domain')
        language: Language code ('zh' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('field.domain', 'en')
        'Domain'
        >>> get_message('field.days_value', 'zh', days=3)
        '3 天'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
    """
    return {language: get_missing_translations(language) for language in SUPPORTED_LANGUAGES}
