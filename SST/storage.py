"""
存储模块 - 快照记录存储与键值存储
"""
import base64
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from models import MeasurementSnapshot
from errors import StorageFailure

logger = logging.getLogger(__name__)


# ===== 快照记录存储 =====
class RecordStore(ABC):
    """快照存储接口：任何失败都以 StorageFailure 抛给调用方，不自动重试"""

    @abstractmethod
    def save(self, record: MeasurementSnapshot) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_all(self) -> List[MeasurementSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, record_id: str) -> None:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    """内存存储（测试与临时会话使用）"""

    def __init__(self):
        self._records: Dict[str, MeasurementSnapshot] = {}

    def save(self, record: MeasurementSnapshot) -> str:
        self._records[record.id] = record
        return record.id

    def get_all(self) -> List[MeasurementSnapshot]:
        return list(self._records.values())

    def delete(self, record_id: str) -> None:
        if record_id not in self._records:
            raise StorageFailure(f"记录不存在: {record_id}")
        del self._records[record_id]


class JsonRecordStore(RecordStore):
    """每条快照保存为目录中的一个 JSON 文件"""

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)

    def _path(self, record_id: str) -> str:
        safe_id = os.path.basename(str(record_id))
        if not safe_id or safe_id != str(record_id):
            raise StorageFailure(f"无效的记录ID: {record_id}")
        return os.path.join(self.directory, f"{safe_id}.json")

    def save(self, record: MeasurementSnapshot) -> str:
        path = self._path(record.id)
        tmp_path = path + '.tmp'
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logger.exception(f"保存快照失败: {record.id}")
            raise StorageFailure(f"保存快照失败: {e}") from e
        return record.id

    def get_all(self) -> List[MeasurementSnapshot]:
        if not os.path.isdir(self.directory):
            return []
        records = []
        try:
            for name in sorted(os.listdir(self.directory)):
                if not name.endswith('.json'):
                    continue
                with open(os.path.join(self.directory, name), 'r', encoding='utf-8') as f:
                    records.append(MeasurementSnapshot.from_dict(json.load(f)))
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.exception("读取快照失败")
            raise StorageFailure(f"读取快照失败: {e}") from e
        return records

    def delete(self, record_id: str) -> None:
        path = self._path(record_id)
        try:
            os.remove(path)
        except OSError as e:
            raise StorageFailure(f"删除快照失败: {record_id}") from e


# ===== 键值存储 =====
class KeyValueStore(ABC):
    """键值存储接口，值必须可 JSON 序列化"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


def _json_copy(value: Any) -> Any:
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise StorageFailure(f"数据无法序列化: {e}") from e


class InMemoryKeyValueStore(KeyValueStore):

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return _json_copy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = _json_copy(value)


def encode_value(value: Any) -> str:
    """JSON → URI 编码 → base64（仅做简单混淆，不是加密）"""
    text = json.dumps(value, ensure_ascii=False)
    return base64.b64encode(quote(text).encode('ascii')).decode('ascii')


def decode_value(encoded: str) -> Any:
    return json.loads(unquote(base64.b64decode(encoded.encode('ascii')).decode('ascii')))


class JsonKeyValueStore(KeyValueStore):
    """所有键保存在同一个 JSON 文件中，值经过混淆编码"""

    def __init__(self, path: str, obfuscate: bool = True):
        self.path = os.path.abspath(path)
        self.obfuscate = obfuscate

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.exception(f"读取键值存储失败: {self.path}")
            raise StorageFailure(f"读取键值存储失败: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        raw = self._load().get(key)
        if raw is None:
            return None
        if not self.obfuscate:
            return raw
        try:
            return decode_value(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise StorageFailure(f"无法解码键 {key}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = encode_value(value) if self.obfuscate else _json_copy(value)
        tmp_path = self.path + '.tmp'
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.exception(f"写入键值存储失败: {key}")
            raise StorageFailure(f"写入键值存储失败: {e}") from e
