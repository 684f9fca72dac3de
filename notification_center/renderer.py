"""
模板渲染

占位符语法只有 {identifier} 一种，不支持嵌套花括号。缺少取值的占位符原样保留在
输出中，调用方可以通过 RenderedContent.unresolved 得知哪些占位符未被替换。
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shared.models import (
    PLACEHOLDER_PATTERN, Template, VariableConfig, VariableDataType, RenderedContent
)
from .exceptions import (
    ChannelUnsupported, TemplateNotPublished, MissingRequiredVariables, VariableValidationFailed
)
from .templates import TemplateCatalog


logger = logging.getLogger(__name__)


_DATE_TOKENS = {
    "yyyy": "%Y",
    "MM": "%m",
    "dd": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}
_DATE_TOKEN_PATTERN = re.compile(r"yyyy|MM|dd|HH|mm|ss")


def to_strptime_format(fmt: str) -> str:
    """将 yyyy-MM-dd HH:mm:ss 风格的格式转换为 strptime 格式"""
    return _DATE_TOKEN_PATTERN.sub(lambda m: _DATE_TOKENS[m.group(0)], fmt)


def substitute(body: str, values: Mapping[str, Any]) -> Tuple[str, List[str]]:
    """
    替换正文中的占位符

    Args:
        body: 模板正文
        values: 变量取值

    Returns:
        Tuple[str, List[str]]: (替换后的正文, 未解析的占位符名称)
    """
    unresolved = []

    def _replace(match):
        name = match.group(1)
        value = values.get(name)
        if value is None:
            if name not in unresolved:
                unresolved.append(name)
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, body), unresolved


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_data_type(variable: VariableConfig, text: str) -> Optional[str]:
    """检查类型和格式，返回警告信息"""
    if variable.data_type == VariableDataType.NUMBER:
        try:
            float(text.replace(",", ""))
        except ValueError:
            return f"变量 {variable.name} 不是有效的数字: {text}"

    elif variable.data_type == VariableDataType.DATE:
        try:
            if variable.format:
                datetime.strptime(text, to_strptime_format(variable.format))
            else:
                datetime.fromisoformat(text)
        except ValueError:
            expected = variable.format or "ISO 8601"
            return f"变量 {variable.name} 不符合日期格式 {expected}: {text}"

    return None


class Renderer:
    """模板渲染器"""

    def __init__(self, catalog: TemplateCatalog):
        self.catalog = catalog

    def validate_variables(self, template: Template, values: Mapping[str, Any]) -> List[str]:
        """
        按变量定义校验取值

        Args:
            template: 模板
            values: 变量取值

        Returns:
            List[str]: 非致命的警告

        Raises:
            MissingRequiredVariables: 存在未提供的必填变量（一次列出全部）
            VariableValidationFailed: 取值未通过校验正则
        """
        missing = [
            variable.name for variable in template.variable_config
            if variable.required and _is_missing(values.get(variable.name))
        ]
        if missing:
            raise MissingRequiredVariables(missing)

        warnings = []
        for variable in template.variable_config:
            value = values.get(variable.name)
            if _is_missing(value):
                continue
            text = str(value)

            if variable.validation_rule:
                try:
                    matched = re.search(variable.validation_rule, text) is not None
                except re.error as e:
                    warnings.append(f"变量 {variable.name} 的校验规则无效: {e}")
                else:
                    if not matched:
                        raise VariableValidationFailed(variable.name, variable.validation_rule)

            if variable.max_length and len(text) > variable.max_length:
                warnings.append(f"变量 {variable.name} 超过最大长度 {variable.max_length}")

            warning = _check_data_type(variable, text)
            if warning:
                warnings.append(warning)

        return warnings

    def check_template(
        self,
        template_ref: str,
        values: Mapping[str, Any],
        production: bool = True
    ) -> Tuple[Template, List[str]]:
        """获取模板并完成发布状态与变量校验，不渲染正文"""
        template = self.catalog.get_template(template_ref)
        return template, self._check(template, values, production)

    def _check(self, template: Template, values: Mapping[str, Any], production: bool) -> List[str]:
        if production and not template.is_published:
            raise TemplateNotPublished(template.code)
        return self.validate_variables(template, values)

    def render(
        self,
        template_ref: str,
        channel_type: str,
        values: Mapping[str, Any],
        production: bool = True
    ) -> RenderedContent:
        """
        渲染模板在指定渠道类型下的正文

        校验顺序：模板不存在、渠道类型不支持、模板未发布、变量校验。

        Args:
            template_ref: 模板ID或编码
            channel_type: 渠道类型
            values: 变量取值
            production: 生产模式下草稿模板不可渲染

        Returns:
            RenderedContent: 渲染结果
        """
        template = self.catalog.get_template(template_ref)

        body = template.content.get(channel_type)
        if body is None:
            raise ChannelUnsupported(template.code, channel_type)

        warnings = self._check(template, values, production)

        content, unresolved = substitute(body, values)
        if unresolved:
            logger.warning(f"模板 {template.code} 存在未解析的占位符: {', '.join(unresolved)}")

        return RenderedContent(
            template_id=template.id,
            template_code=template.code,
            channel_type=channel_type,
            content=content,
            warnings=warnings,
            unresolved=unresolved,
        )

    def preview(self, template_ref: str, values: Mapping[str, Any]) -> Dict[str, str]:
        """预览所有渠道的正文，不做校验"""
        template = self.catalog.get_template(template_ref)
        return {
            channel_type: substitute(body, values)[0]
            for channel_type, body in template.content.items()
        }
