#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Configuration Module
===========================================
Copyright (c) 2025 PNGN-Tec LLC

Centralized Configuration System
=================================
Complete configuration for the glyph markup engine including:
- Ambient default colors handed to every parse
- Directive syntax settings (escape character, directive prefix)
- Named color palettes (ANSI 16-color console set, PNGN team colors)
- Environment overrides and runtime reloading
- Logging setup helper

Color System
============
Named colors are resolved from two palettes before falling back to the
CSS/X11 names known to Pillow:
- ANSI_16_COLORS: the classic console set (ansiblack ... ansiwhitebright)
- PNGN_PALETTE: PNGN team signature colors

Palette keys are normalized (lower case, no spaces, dashes or underscores)
so "ANSI Blue Bright" and "ansibluebright" name the same color.
"""

import threading
import logging
import os
from typing import Tuple, List, Optional, Callable
from dataclasses import dataclass, field, fields

# Configure logging
logger = logging.getLogger('PNGN.Markup.Config')

# Type alias for RGBA colors
RGBAColor = Tuple[int, int, int, int]

# ============================================================================
# DIRECTIVE SYNTAX
# ============================================================================

ESCAPE_CHAR = '`'           # Placed before "[c:" to print the directive
DIRECTIVE_PREFIX = 'c:'     # "[c:r f:red]"
BLINK_DEFAULT_DUTY = 0.5    # Fraction of the blink period spent visible

# ============================================================================
# COLOR PALETTES
# ============================================================================

ANSI_16_COLORS = {
    'ansiblack': {'name': 'ANSI Black', 'rgb': (0, 0, 0)},
    'ansired': {'name': 'ANSI Red', 'rgb': (170, 0, 0)},
    'ansigreen': {'name': 'ANSI Green', 'rgb': (0, 170, 0)},
    'ansiyellow': {'name': 'ANSI Yellow', 'rgb': (170, 85, 0)},
    'ansiblue': {'name': 'ANSI Blue', 'rgb': (0, 0, 170)},
    'ansimagenta': {'name': 'ANSI Magenta', 'rgb': (170, 0, 170)},
    'ansicyan': {'name': 'ANSI Cyan', 'rgb': (0, 170, 170)},
    'ansiwhite': {'name': 'ANSI White', 'rgb': (170, 170, 170)},

    # Bright variants
    'ansiblackbright': {'name': 'ANSI Black Bright', 'rgb': (85, 85, 85)},
    'ansiredbright': {'name': 'ANSI Red Bright', 'rgb': (255, 85, 85)},
    'ansigreenbright': {'name': 'ANSI Green Bright', 'rgb': (85, 255, 85)},
    'ansiyellowbright': {'name': 'ANSI Yellow Bright', 'rgb': (255, 255, 85)},
    'ansibluebright': {'name': 'ANSI Blue Bright', 'rgb': (85, 85, 255)},
    'ansimagentabright': {'name': 'ANSI Magenta Bright', 'rgb': (255, 85, 255)},
    'ansicyanbright': {'name': 'ANSI Cyan Bright', 'rgb': (85, 255, 255)},
    'ansiwhitebright': {'name': 'ANSI White Bright', 'rgb': (255, 255, 255)},
}

PNGN_PALETTE = {
    'pngnpurple': {'name': 'PNGN Purple', 'rgb': (191, 0, 255)},
    'kllrpink': {'name': 'KLLR Pink', 'rgb': (255, 0, 215)},
    'shmagreen': {'name': 'SHMA Green', 'rgb': (0, 255, 0)},
    'voidblack': {'name': 'Void Black', 'rgb': (15, 15, 35)},
    'whiteflash': {'name': 'White Flash', 'rgb': (255, 255, 255)},
    'plasmasilver': {'name': 'Plasma Silver', 'rgb': (205, 205, 205)},
    'digitalcyan': {'name': 'Digital Cyan', 'rgb': (0, 191, 255)},
    'fireorange': {'name': 'Fire Orange', 'rgb': (255, 191, 0)},
}


def normalize_color_name(name: str) -> str:
    """Fold a color name into palette key form"""
    return ''.join(ch for ch in name.lower() if ch not in ' _-')


def lookup_palette_color(name: str) -> Optional[RGBAColor]:
    """
    Look a color name up in the built-in palettes.

    Args:
        name: Color name in any case/spacing

    Returns:
        Opaque RGBA tuple, or None when neither palette knows the name
    """
    key = normalize_color_name(name)
    entry = ANSI_16_COLORS.get(key) or PNGN_PALETTE.get(key)
    if entry is None:
        return None
    r, g, b = entry['rgb']
    return (r, g, b, 255)


# ============================================================================
# MARKUP CONFIGURATION
# ============================================================================

@dataclass
class MarkupConfig:
    """
    Ambient settings applied to every parse.

    Attributes:
        default_foreground: Foreground of cells no recolor touches
        default_background: Background of cells no recolor touches
        escape_char: Character that suppresses the directive right after it
        directive_prefix: Text following "[" that opens a directive
        blink_default_duty: Duty fraction used when a blink omits it
    """

    default_foreground: RGBAColor = (255, 255, 255, 255)
    default_background: RGBAColor = (0, 0, 0, 255)

    escape_char: str = ESCAPE_CHAR
    directive_prefix: str = DIRECTIVE_PREFIX

    blink_default_duty: float = BLINK_DEFAULT_DUTY

    def validate(self) -> bool:
        """Validate markup configuration"""
        for label, color in (('foreground', self.default_foreground),
                             ('background', self.default_background)):
            if len(color) != 4 or any(not 0 <= c <= 255 for c in color):
                raise ValueError(f"Default {label} must be four components in 0-255")
        if len(self.escape_char) != 1:
            raise ValueError("Escape character must be a single character")
        if '[' in self.escape_char or ']' in self.escape_char:
            raise ValueError("Escape character cannot be a bracket")
        if not self.directive_prefix or ']' in self.directive_prefix:
            raise ValueError("Directive prefix must be non-empty and bracket free")
        if not 0.0 < self.blink_default_duty < 1.0:
            raise ValueError("Blink duty must lie strictly between 0 and 1")
        return True


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

@dataclass
class SystemConfig:
    """Complete system configuration"""

    markup: MarkupConfig = field(default_factory=MarkupConfig)

    # System-wide settings
    debug_mode: bool = False
    log_level: str = "INFO"

    def validate(self) -> bool:
        """Validate entire configuration"""
        self.markup.validate()
        if logging.getLevelName(self.log_level.upper()) not in (
                logging.DEBUG, logging.INFO, logging.WARNING,
                logging.ERROR, logging.CRITICAL):
            raise ValueError(f"Unknown log level: {self.log_level}")
        return True


def _parse_rgba_env(value: str) -> RGBAColor:
    """Parse an "R,G,B[,A]" environment value"""
    parts = [int(p) for p in value.split(',')]
    if len(parts) == 3:
        parts.append(255)
    if len(parts) != 4:
        raise ValueError(f"Expected R,G,B[,A], got {value!r}")
    return (parts[0], parts[1], parts[2], parts[3])


# ============================================================================
# CONFIGURATION MANAGER (SINGLETON)
# ============================================================================

ConfigListener = Callable[[SystemConfig, SystemConfig], None]


def _changed_fields(old: SystemConfig, new: SystemConfig) -> List[str]:
    """Dotted names of the settings that differ between two configurations"""
    changed = [f"markup.{f.name}" for f in fields(MarkupConfig)
               if getattr(old.markup, f.name) != getattr(new.markup, f.name)]
    changed += [name for name in ('debug_mode', 'log_level')
                if getattr(old, name) != getattr(new, name)]
    return changed


class ConfigurationManager:
    """
    Process-wide holder of the active SystemConfig.

    The first construction reads the PNGN_* environment; later
    constructions return the same object. Replacing the configuration goes
    through reload(), which validates first and only then swaps and tells
    listeners which settings moved.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._setup()
                cls._instance = instance
        return cls._instance

    def _setup(self):
        self._config_lock = threading.RLock()
        self._listeners: List[ConfigListener] = []
        try:
            self._config = self._from_environment()
        except ValueError as e:
            logger.error(f"Ignoring invalid environment overrides: {e}")
            self._config = SystemConfig()
        logger.info(f"Configuration manager initialized "
                    f"(fg={self._config.markup.default_foreground}, "
                    f"bg={self._config.markup.default_background})")

    @staticmethod
    def _from_environment() -> SystemConfig:
        """Defaults with PNGN_* environment overrides applied, validated"""
        config = SystemConfig()
        env = os.environ

        # Ambient colors
        if 'PNGN_MARKUP_FG' in env:
            config.markup.default_foreground = _parse_rgba_env(env['PNGN_MARKUP_FG'])
        if 'PNGN_MARKUP_BG' in env:
            config.markup.default_background = _parse_rgba_env(env['PNGN_MARKUP_BG'])

        # Syntax
        if 'PNGN_MARKUP_ESCAPE' in env:
            config.markup.escape_char = env['PNGN_MARKUP_ESCAPE']
        if 'PNGN_BLINK_DUTY' in env:
            config.markup.blink_default_duty = float(env['PNGN_BLINK_DUTY'])

        # Debug mode
        if 'PNGN_DEBUG' in env:
            config.debug_mode = env['PNGN_DEBUG'].lower() in ('true', '1', 'yes')
        if 'PNGN_LOG_LEVEL' in env:
            config.log_level = env['PNGN_LOG_LEVEL'].upper()

        config.validate()
        return config

    @property
    def config(self) -> SystemConfig:
        with self._config_lock:
            return self._config

    def reload(self, new_config: Optional[SystemConfig] = None) -> bool:
        """
        Swap in a new configuration.

        Args:
            new_config: Configuration to apply; None re-reads the environment

        Returns:
            False (and the old configuration stays) if validation fails
        """
        with self._config_lock:
            try:
                if new_config is None:
                    new_config = self._from_environment()
                else:
                    new_config.validate()
            except ValueError as e:
                logger.error(f"Configuration reload failed: {e}")
                return False

            old_config, self._config = self._config, new_config
            listeners = list(self._listeners)

        changed = _changed_fields(old_config, new_config)
        logger.info(f"Configuration reloaded, changed: {', '.join(changed) or 'nothing'}")
        for listener in listeners:
            try:
                listener(old_config, new_config)
            except Exception as e:
                logger.error(f"Config listener {getattr(listener, '__name__', listener)!r} failed: {e}")
        return True

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        """
        Call listener(old, new) after every successful reload.

        Returns:
            Function that removes the listener again
        """
        with self._config_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: ConfigListener) -> bool:
        """Remove a listener; False if it was not subscribed"""
        with self._config_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False


# ============================================================================
# PUBLIC API FUNCTIONS
# ============================================================================

_manager = ConfigurationManager()

def get_config() -> SystemConfig:
    """Get current system configuration"""
    return _manager.config

def get_markup_config() -> MarkupConfig:
    """Get markup configuration"""
    return _manager.config.markup

def reload_config(new_config: Optional[SystemConfig] = None) -> bool:
    """Reload system configuration"""
    return _manager.reload(new_config)

def register_config_callback(callback: ConfigListener) -> Callable[[], None]:
    """Register for configuration change notifications; returns the unregister function"""
    return _manager.subscribe(callback)

def unregister_config_callback(callback: ConfigListener) -> bool:
    """Unregister a configuration change callback"""
    return _manager.unsubscribe(callback)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Apply a log level to the PNGN logger hierarchy.

    Args:
        level: Level name; defaults to the configured log_level, or DEBUG
               when debug_mode is on
    """
    config = _manager.config
    if level is None:
        level = 'DEBUG' if config.debug_mode else config.log_level
    logging.basicConfig(format='%(asctime)s %(name)s %(levelname)s: %(message)s')
    logging.getLogger('PNGN').setLevel(level.upper())
