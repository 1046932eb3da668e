# Logger.py

import asyncio
import os
import sys
import threading
import traceback
from base64 import b64encode
from datetime import datetime
from json import dumps
from platform import system, version
from typing import Any, Dict, List, Mapping, Optional

from Crypto.Cipher import PKCS1_OAEP, AES
from Crypto.PublicKey import RSA
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad
from colorama import Fore
from rich.console import Console

console = Console()


class Logger:
	def __init__(self, app_name: str, file_name: str, file_ending: str = ".log", debug: bool = False):
		self.app_name = app_name
		self.file_name = file_name
		self.file_ending = file_ending
		self.debug_enabled = debug

		self.VERSION = "v1.0.0"

		self.LEVELS = {1: "Error",
		               2: "Warning",
		               3: "Info",
		               4: "Debug"}
		self.COLORS = {1: Fore.RED, 2: Fore.YELLOW, 3: Fore.BLUE, 4: Fore.LIGHTWHITE_EX}

		self.key = None
		self._write_lock = threading.Lock()

	def _encrypt_message(self, message: str) -> str:
		if self.key is None:
			return message

		cipher_rsa = PKCS1_OAEP.new(self.key)

		aes_key = get_random_bytes(16)

		cipher_aes = AES.new(aes_key, AES.MODE_CBC)

		encrypted_message = cipher_aes.encrypt(pad(message.encode("utf-8"), AES.block_size))

		encrypted_aes_key = cipher_rsa.encrypt(aes_key)

		return b64encode(encrypted_aes_key + cipher_aes.iv + encrypted_message).decode("utf-8")

	@staticmethod
	def _timestamp():
		return datetime.now()

	@staticmethod
	def _coerce_value(value: Any) -> Any:
		if isinstance(value, (str, int, float, bool)) or value is None:
			return value
		if isinstance(value, (list, tuple, set)):
			return [Logger._coerce_value(item) for item in value]
		if isinstance(value, dict):
			return {str(key): Logger._coerce_value(val) for key, val in value.items()}
		return repr(value)

	def _serialize_context(self, context: Mapping[str, Any]) -> str:
		try:
			sanitized = {str(key): self._coerce_value(val) for key, val in context.items()}
			return dumps(sanitized, ensure_ascii=True, default=repr)
		except (TypeError, ValueError):
			return repr(context)

	@staticmethod
	def _format_exception_info(exc_info: Any) -> Optional[str]:
		if exc_info is None:
			return None

		if isinstance(exc_info, BaseException):
			return "".join(traceback.format_exception(type(exc_info), exc_info, exc_info.__traceback__))

		if isinstance(exc_info, tuple) and len(exc_info) == 3:
			exc_type, exc_value, exc_tb = exc_info
			return "".join(traceback.format_exception(exc_type, exc_value, exc_tb))

		return repr(exc_info)

	def _format_message(self, level: int, message: str, context: Optional[Mapping[str, Any]] = None,
	                    exc_info: Optional[Any] = None) -> str:
		level_name = self.LEVELS.get(level, "Unknown")
		timestamp_str = self._timestamp().strftime("%Y-%m-%d %H:%M:%S")

		details: List[str] = []
		if message:
			details.append(message)

		if context:
			details.append(f"context={self._serialize_context(context)}")

		exc_text = self._format_exception_info(exc_info)
		if exc_text:
			details.append(f"exception=\n{exc_text}")

		details.append(f"thread={threading.current_thread().name}")

		formatted_body = "\n".join(details)
		return f"{timestamp_str} - {level_name}: {formatted_body}"

	def _get_log_filename(self) -> str:
		now = self._timestamp()
		return f"{self.file_name}_{now.strftime('%Y-%m-%d')}{self.file_ending}"

	def _log_file_header(self):
		return (f"\n"
		        f"============================================================\n"
		        f"Application Name:    {self.app_name}\n"
		        f"Version:             {self.VERSION}\n"
		        f"Log File Created:    {self._timestamp()}\n"
		        f"Log Levels:          [DEBUG | INFO | WARNING | ERROR]\n"
		        f"------------------------------------------------------------\n"
		        f"Operating System:    [{system()}, {version()}]\n"
		        f"Encrypted:           {self.key is not None}\n"
		        f"------------------------------------------------------------\n"
		        f"Log Format:          [Timestamp] [Log Level] [Message]\n\n"
		        f"============================================================\n\n"
		        f"Log Start:\n")

	def load_public_key(self, key: str):
		self.key = RSA.import_key(key)

	def log(self, level: int, message: str, *, context: Optional[Mapping[str, Any]] = None,
	        exc_info: Optional[Any] = None) -> int:
		if level not in self.LEVELS:
			return -1  # Invalid level

		log_filename = self._get_log_filename()

		directory = os.path.dirname(log_filename)
		if directory:
			os.makedirs(directory, exist_ok=True)

		formatted = self._format_message(level, message, context=context, exc_info=exc_info)

		if self.debug_enabled:
			console.print(f"{self.COLORS[level]}{formatted}{Fore.RESET}", markup=False, highlight=False)

		try:
			with self._write_lock:
				if os.path.exists(log_filename):
					with open(log_filename, "a", encoding="utf-8") as f:
						f.write(self._encrypt_message(formatted) + "\n")
				else:
					with open(log_filename, "w", encoding="utf-8") as f:
						f.write(self._encrypt_message(self._log_file_header()) + "\n")
						f.write(self._encrypt_message(formatted) + "\n")
		except IOError as e:
			console.print(f"Error writing to log file: {e}")
			return -2  # File I/O error

		return 1  # Success

	def debug(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> int:
		return self.log(4, message, context=context)

	def info(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> int:
		return self.log(3, message, context=context)

	def warning(self, message: str, *, context: Optional[Mapping[str, Any]] = None,
	            exc_info: Optional[Any] = None) -> int:
		return self.log(2, message, context=context, exc_info=exc_info)

	def error(self, message: str, *, context: Optional[Mapping[str, Any]] = None,
	          exc_info: Optional[Any] = None) -> int:
		return self.log(1, message, context=context, exc_info=exc_info)

	def log_exception(self, message: str, exception: BaseException,
	                  *, context: Optional[Mapping[str, Any]] = None, level: int = 1) -> int:
		return self.log(level, message, context=context, exc_info=exception)


def install_global_exception_handlers(app_logger: Logger) -> None:
	"""Route uncaught exceptions from every thread and the event loop into the log file."""

	def handle_exception(exc_type, exc_value, exc_traceback):
		if issubclass(exc_type, KeyboardInterrupt):
			sys.__excepthook__(exc_type, exc_value, exc_traceback)
			return
		app_logger.error(
			"Unhandled exception in main thread",
			context={"source": "sys.excepthook"},
			exc_info=(exc_type, exc_value, exc_traceback),
		)

	sys.excepthook = handle_exception

	def threading_exception_handler(args):
		if issubclass(args.exc_type, KeyboardInterrupt):
			return
		app_logger.error(
			"Unhandled exception in background thread",
			context={"thread": getattr(args.thread, "name", "unknown")},
			exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
		)

	threading.excepthook = threading_exception_handler

	def handle_asyncio_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
		context_payload = {key: repr(value) for key, value in context.items() if key != "exception"}
		app_logger.error(
			"Unhandled exception in asyncio task",
			context={"loop_id": id(loop), **context_payload},
			exc_info=context.get("exception"),
		)

	try:
		loop = asyncio.get_running_loop()
	except RuntimeError:
		loop = None

	if loop is not None:
		loop.set_exception_handler(handle_asyncio_exception)
	else:
		app_logger.debug(
			"Asyncio loop not running during handler install; handler not attached.",
			context={"thread": threading.current_thread().name},
		)
