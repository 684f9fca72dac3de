"""消息模板数据模型"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import BaseSchema, find_placeholders


class TemplateStatus(str, Enum):
    """模板状态枚举"""
    DRAFT = "draft"
    PUBLISHED = "published"


class VariableDataType(str, Enum):
    """模板变量数据类型"""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class VariableConfig(BaseModel):
    """模板变量定义"""
    name: str = Field(..., min_length=1, description="变量名")
    data_type: VariableDataType = Field(VariableDataType.STRING, description="数据类型")
    required: bool = Field(False, description="是否必填")
    description: str = Field("", description="变量说明")
    validation_rule: Optional[str] = Field(None, description="校验正则")
    max_length: Optional[int] = Field(None, gt=0, description="最大长度")
    format: Optional[str] = Field(None, description="格式，如 yyyy-MM-dd")
    example: Optional[str] = Field(None, description="示例值")

    @field_validator('validation_rule', 'format')
    @classmethod
    def empty_as_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class Template(BaseSchema):
    """消息模板"""
    id: str = Field(..., min_length=1, description="模板ID")
    name: str = Field(..., min_length=1, description="模板名称")
    code: str = Field(..., min_length=1, description="模板编码，全局唯一")
    category: str = Field("notification", description="模板分类")
    status: TemplateStatus = Field(TemplateStatus.DRAFT, description="模板状态")
    content: Dict[str, str] = Field(default_factory=dict, description="渠道类型到正文的映射")
    variable_config: List[VariableConfig] = Field(default_factory=list, description="变量定义")
    description: Optional[str] = Field(None, description="模板描述")
    version: str = Field("1.0.0", description="版本号")

    @model_validator(mode='after')
    def validate_placeholders(self):
        declared = {variable.name for variable in self.variable_config}
        if len(declared) != len(self.variable_config):
            raise ValueError("变量定义中存在重复的变量名")
        for channel_type, body in self.content.items():
            undeclared = [name for name in find_placeholders(body) if name not in declared]
            if undeclared:
                raise ValueError(
                    f"模板 {self.code} 的 {channel_type} 正文引用了未定义的变量: {', '.join(undeclared)}"
                )
        return self

    @property
    def is_published(self) -> bool:
        return self.status == TemplateStatus.PUBLISHED

    @property
    def channel_types(self) -> List[str]:
        return list(self.content.keys())

    def get_variable(self, name: str) -> Optional[VariableConfig]:
        for variable in self.variable_config:
            if variable.name == name:
                return variable
        return None

    def example_values(self) -> Dict[str, str]:
        """所有变量的示例值"""
        return {
            variable.name: variable.example
            for variable in self.variable_config
            if variable.example is not None
        }


class RenderedContent(BaseModel):
    """渲染结果"""
    template_id: str
    template_code: str
    channel_type: str
    content: str
    warnings: List[str] = Field(default_factory=list, description="非致命的校验警告")
    unresolved: List[str] = Field(default_factory=list, description="未解析的占位符")

    @property
    def fully_resolved(self) -> bool:
        return not self.unresolved
