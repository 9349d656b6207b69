from config import DEFAULT_REPORT_DAYS, DEFAULT_TIMEZONE, get_settings


def test_defaults():
    settings = get_settings({})
    assert settings.data_dir == "behavior_data"
    assert settings.timezone == DEFAULT_TIMEZONE
    assert settings.teacher_id == "current_teacher"
    assert settings.report_days == DEFAULT_REPORT_DAYS
    assert settings.log_level == "INFO"


def test_values_from_environment():
    settings = get_settings({
        "BEHAVIOR_DATA_DIR": "/tmp/behavior",
        "BEHAVIOR_TIMEZONE": "Europe/London",
        "BEHAVIOR_TEACHER_ID": "ms_frizzle",
        "BEHAVIOR_REPORT_DAYS": "14",
        "BEHAVIOR_LOG_LEVEL": "debug",
    })
    assert settings.data_dir == "/tmp/behavior"
    assert settings.tz.zone == "Europe/London"
    assert settings.teacher_id == "ms_frizzle"
    assert settings.report_days == 14
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back(caplog):
    settings = get_settings({"BEHAVIOR_REPORT_DAYS": "soon", "BEHAVIOR_TIMEZONE": "Mars/Olympus"})
    assert settings.report_days == DEFAULT_REPORT_DAYS
    assert settings.timezone == DEFAULT_TIMEZONE
    assert "BEHAVIOR_REPORT_DAYS" in caplog.text
