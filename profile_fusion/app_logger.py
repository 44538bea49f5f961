import logging, os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("PROFILE_FUSION_LOG_LEVEL", "INFO").upper()

def setup_logging():
    # Настраиваем один раз: уровень из окружения, один консольный handler
    logger = logging.getLogger("profile_fusion")
    logger.setLevel(getattr(logging, _DEFAULT_LEVEL, logging.INFO))

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        ch.setLevel(logger.level)
        logger.addHandler(ch)

    return logger

def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("profile_fusion")
    if not name:
        return base
    # "profile_fusion.merge" -> child "merge"
    if name.startswith("profile_fusion."):
        name = name[len("profile_fusion."):]
    return base.getChild(name)

logger = setup_logging()
