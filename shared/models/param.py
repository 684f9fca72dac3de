"""标准参数与参数映射模型"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


# 标准参数是封闭集合
STANDARD_PARAM_KEYS = (
    "recipient",
    "subject",
    "content",
    "attachment",
    "importance",
    "template_id",
    "url",
)


class StandardParam(BaseModel):
    """标准参数"""
    key: str = Field(..., description="参数键")
    label: str = Field(..., description="显示名称")
    description: str = Field("", description="参数说明")
    required: bool = Field(False, description="是否必填")

    @field_validator('key')
    @classmethod
    def validate_key(cls, v):
        if v not in STANDARD_PARAM_KEYS:
            raise ValueError(f'未知的标准参数: {v}')
        return v


class ChannelParamMapping(BaseModel):
    """某一渠道类型下的参数映射"""
    param_key: str = Field("", description="渠道参数名，为空表示不支持")
    description: str = Field("", description="渠道参数说明")
    is_required: bool = Field(False, description="渠道是否要求该参数")

    @property
    def supported(self) -> bool:
        return bool(self.param_key)


class ParamMappingEntry(BaseModel):
    """标准参数的映射条目"""
    standard_param: StandardParam
    mappings: Dict[str, ChannelParamMapping] = Field(default_factory=dict, description="渠道类型到参数映射")

    @property
    def key(self) -> str:
        return self.standard_param.key

    def mapping_for(self, channel_type: str) -> Optional[ChannelParamMapping]:
        """获取渠道类型的映射，未配置或为空时返回None"""
        mapping = self.mappings.get(channel_type)
        if mapping is None or not mapping.supported:
            return None
        return mapping
