"""
消息模板目录
"""

import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from shared.models import Template, TemplateStatus
from .exceptions import TemplateNotFound, DuplicateTemplateCode


logger = logging.getLogger(__name__)


class TemplateCatalog:
    """模板目录，按ID和编码索引"""

    def __init__(self, templates: Iterable[Template] = ()):
        self._templates: Dict[str, Template] = {}
        self._lock = threading.RLock()
        for template in templates:
            self.add(template)

    def load(self, templates: Iterable[Template]):
        """用持久化数据替换目录内容"""
        with self._lock:
            self._templates = {}
            for template in templates:
                self.add(template)
        logger.info(f"加载消息模板: {len(self._templates)} 个")

    def _find(self, ref: str) -> Optional[Template]:
        template = self._templates.get(ref)
        if template is not None:
            return template
        for candidate in self._templates.values():
            if candidate.code == ref:
                return candidate
        return None

    def get_template(self, ref: str) -> Template:
        """
        按ID或编码获取模板

        Raises:
            TemplateNotFound: 模板不存在
        """
        with self._lock:
            template = self._find(ref)
            if template is None:
                raise TemplateNotFound(ref)
            return template

    def add(self, template: Template) -> Template:
        """添加模板，编码必须唯一"""
        with self._lock:
            if template.id in self._templates:
                raise DuplicateTemplateCode(template.id)
            if any(t.code == template.code for t in self._templates.values()):
                raise DuplicateTemplateCode(template.code)
            if template.created_at is None:
                template = template.model_copy(update={"created_at": datetime.utcnow()})
            self._templates[template.id] = template
        logger.debug(f"添加模板: {template.code}")
        return template

    def update(self, template_id: str, template: Template) -> Template:
        """整体替换模板内容，ID保持不变"""
        with self._lock:
            existing = self._find(template_id)
            if existing is None:
                raise TemplateNotFound(template_id)
            clash = [
                t for t in self._templates.values()
                if t.code == template.code and t.id != existing.id
            ]
            if clash:
                raise DuplicateTemplateCode(template.code)
            updated = template.model_copy(update={
                "id": existing.id,
                "created_at": existing.created_at,
                "updated_at": datetime.utcnow(),
            })
            self._templates[existing.id] = updated
        logger.info(f"更新模板: {updated.code}")
        return updated

    def delete(self, template_id: str):
        with self._lock:
            existing = self._find(template_id)
            if existing is None:
                raise TemplateNotFound(template_id)
            del self._templates[existing.id]
        logger.info(f"删除模板: {existing.code}")

    def publish(self, template_id: str) -> Template:
        """发布模板"""
        with self._lock:
            existing = self._find(template_id)
            if existing is None:
                raise TemplateNotFound(template_id)
            published = existing.model_copy(update={
                "status": TemplateStatus.PUBLISHED,
                "updated_at": datetime.utcnow(),
            })
            self._templates[existing.id] = published
        logger.info(f"模板已发布: {published.code}")
        return published

    def list_templates(self, status: Optional[TemplateStatus] = None) -> List[Template]:
        with self._lock:
            templates = list(self._templates.values())
        if status is not None:
            templates = [t for t in templates if t.status == status]
        return templates
