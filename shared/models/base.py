"""基础数据模型"""

import re
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel as PydanticBaseModel, ConfigDict


# {identifier} 占位符：标识符只允许ASCII字母、数字和下划线，且不能嵌套在另一对花括号内
PLACEHOLDER_PATTERN = re.compile(r"(?<!\{)\{([A-Za-z_][A-Za-z0-9_]*)\}(?!\})")


def find_placeholders(body: str) -> list[str]:
    """按出现顺序返回正文中的占位符名称（去重）"""
    names = []
    for match in PLACEHOLDER_PATTERN.finditer(body or ""):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


class BaseSchema(PydanticBaseModel):
    """基础Pydantic模型"""

    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """转换为可JSON序列化的字典"""
        return self.model_dump(mode="json")
