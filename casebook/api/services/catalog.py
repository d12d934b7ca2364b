import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from pydantic import ValidationError
from casebook.api.models.case import (
    ALL, Module, ModuleCreate, ModuleUpdate, Priority, Status,
    TestCase, TestCaseCreate, TestCaseUpdate
)
from casebook.api.models.report import ImportResult
from casebook.api.services.query import TestCaseFilter, filter_test_cases, sort_test_cases
from casebook.logger.logger import logger
from casebook.storage.kv import KeyValueStorage, MODULES_KEY, TEST_CASES_KEY
from casebook.utils.common import json_dumps, next_timestamp, safe_json_loads

DEFAULT_MODULES = [
    {"name": "Authentication", "description": "Login and user management"},
    {"name": "User Interface", "description": "UI components and interactions"},
    {"name": "API", "description": "Backend API testing"},
]

def _new_id() -> str:
    return str(uuid.uuid4())

def _text(value: Any) -> str:
    """把松散类型的单元格值转换为去除首尾空白的字符串"""
    if value is None:
        return ""
    return str(value).strip()

def coerce_choice(enum_cls, value: Any, default):
    """不区分大小写地匹配枚举值，无法识别时回退到默认值"""
    if isinstance(value, enum_cls):
        return value
    text = _text(value)
    if not text:
        return default
    for member in enum_cls:
        if member.value.lower() == text.lower():
            return member
    logger.warning(f"无法识别的{enum_cls.__name__}取值: {text}，使用默认值 {default.value}")
    return default

class CatalogStore:
    """用例目录存储

    持有测试用例和模块两个集合，以及视图共享的查询状态（搜索词、选中模块）。
    每次变更后立即写回键值存储，两个集合分别持久化。
    按 id 更新或删除不存在的记录时静默忽略。
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], datetime] = datetime.now,
        seed_defaults: bool = True
    ):
        self.storage = storage
        self.clock = clock
        self.test_cases: List[TestCase] = []
        self.modules: List[Module] = []
        self.search_term: str = ""
        self.selected_module: str = ALL
        self._load(seed_defaults)

    # ------------------------------------------------------------------
    # 持久化
    # ------------------------------------------------------------------

    def _load(self, seed_defaults: bool) -> None:
        """从存储恢复集合，损坏的数据会被丢弃"""
        raw_cases = self.storage.get(TEST_CASES_KEY)
        if raw_cases is not None:
            self.test_cases = self._restore(TEST_CASES_KEY, raw_cases, TestCase)

        raw_modules = self.storage.get(MODULES_KEY)
        if raw_modules is not None:
            self.modules = self._restore(MODULES_KEY, raw_modules, Module)
        elif seed_defaults:
            now = self.clock()
            self.modules = [
                Module(id=str(index), created_at=now, **item)
                for index, item in enumerate(DEFAULT_MODULES, start=1)
            ]
            self._save_modules()
            logger.info("已初始化默认模块")

        logger.info(f"用例目录加载完成: {len(self.test_cases)} 个用例, {len(self.modules)} 个模块")

    def _restore(self, key: str, raw: str, model) -> list:
        data = safe_json_loads(raw)
        if not isinstance(data, list):
            logger.error(f"持久化数据损坏，已丢弃: key={key}")
            self.storage.remove(key)
            return []
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as e:
            logger.error(f"持久化数据损坏，已丢弃: key={key}, error={str(e)}")
            self.storage.remove(key)
            return []

    def _save_test_cases(self) -> None:
        self.storage.set(TEST_CASES_KEY, json_dumps([tc.to_storage() for tc in self.test_cases]))

    def _save_modules(self) -> None:
        self.storage.set(MODULES_KEY, json_dumps([m.to_storage() for m in self.modules]))

    # ------------------------------------------------------------------
    # 测试用例
    # ------------------------------------------------------------------

    def get_test_case(self, id: str) -> Optional[TestCase]:
        """按系统标识获取用例"""
        return next((tc for tc in self.test_cases if tc.id == id), None)

    def find_by_test_case_id(self, test_case_id: str) -> Optional[TestCase]:
        """按业务编号获取用例"""
        return next((tc for tc in self.test_cases if tc.test_case_id == test_case_id), None)

    def add_test_case(self, data: Union[TestCaseCreate, Dict[str, Any]]) -> TestCase:
        """新增用例

        分配新的标识，createdAt 与 updatedAt 取同一时刻。

        Raises:
            ValueError: 业务编号已存在
        """
        if not isinstance(data, TestCaseCreate):
            data = TestCaseCreate.model_validate(data)

        if self.find_by_test_case_id(data.test_case_id):
            raise ValueError(f"Test Case ID already exists: {data.test_case_id}")

        now = self.clock()
        test_case = TestCase(
            id=_new_id(),
            created_at=now,
            updated_at=now,
            **data.model_dump()
        )
        self.test_cases.append(test_case)
        self._save_test_cases()
        logger.info(f"新增用例: {test_case.test_case_id} ({test_case.id})")
        return test_case

    def update_test_case(self, id: str, updates: Union[TestCaseUpdate, Dict[str, Any]]) -> Optional[TestCase]:
        """部分更新用例，合并提供的字段并刷新 updatedAt

        Returns:
            Optional[TestCase]: 更新后的用例，不存在时返回 None

        Raises:
            ValueError: 业务编号与其他用例冲突
        """
        if not isinstance(updates, TestCaseUpdate):
            updates = TestCaseUpdate.model_validate(updates)

        index = next((i for i, tc in enumerate(self.test_cases) if tc.id == id), None)
        if index is None:
            return None

        current = self.test_cases[index]
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        new_id = changes.get("test_case_id")
        if new_id and new_id != current.test_case_id:
            other = self.find_by_test_case_id(new_id)
            if other is not None and other.id != id:
                raise ValueError(f"Test Case ID already exists: {new_id}")

        changes["updated_at"] = next_timestamp(self.clock(), current.updated_at)
        self.test_cases[index] = TestCase.model_validate({**current.model_dump(), **changes})
        self._save_test_cases()
        logger.info(f"更新用例: {current.test_case_id}, 字段: {sorted(k for k in changes if k != 'updated_at')}")
        return self.test_cases[index]

    def delete_test_case(self, id: str) -> bool:
        """删除用例，不存在时静默返回 False"""
        remaining = [tc for tc in self.test_cases if tc.id != id]
        if len(remaining) == len(self.test_cases):
            return False
        self.test_cases = remaining
        self._save_test_cases()
        logger.info(f"删除用例: {id}")
        return True

    def test_cases_for_module(self, name: str) -> List[TestCase]:
        return [tc for tc in self.test_cases if tc.module == name]

    # ------------------------------------------------------------------
    # 模块
    # ------------------------------------------------------------------

    def get_module(self, id: str) -> Optional[Module]:
        return next((m for m in self.modules if m.id == id), None)

    def module_names(self) -> List[str]:
        return [m.name for m in self.modules]

    def _check_module_name(self, name: Optional[str], exclude_id: Optional[str] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("Module name is required")
        if any(m.name == name and m.id != exclude_id for m in self.modules):
            raise ValueError(f"Module name already exists: {name}")
        return name

    def add_module(self, data: Union[ModuleCreate, Dict[str, Any]]) -> Module:
        """新增模块

        Raises:
            ValueError: 名称为空或已存在
        """
        if not isinstance(data, ModuleCreate):
            data = ModuleCreate.model_validate(data)
        name = self._check_module_name(data.name)

        module = Module(id=_new_id(), name=name, description=data.description, created_at=self.clock())
        self.modules.append(module)
        self._save_modules()
        logger.info(f"新增模块: {module.name}")
        return module

    def update_module(self, id: str, updates: Union[ModuleUpdate, Dict[str, Any]]) -> Optional[Module]:
        """部分更新模块（不刷新时间戳）

        重命名时同步改写引用旧名称的用例的 module 字段。
        """
        if not isinstance(updates, ModuleUpdate):
            updates = ModuleUpdate.model_validate(updates)

        index = next((i for i, m in enumerate(self.modules) if m.id == id), None)
        if index is None:
            return None

        current = self.modules[index]
        changes = updates.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = self._check_module_name(changes["name"], exclude_id=id)

        updated = current.model_copy(update=changes)
        self.modules[index] = updated
        self._save_modules()

        if updated.name != current.name:
            self._rename_module_references(current.name, updated.name)
        logger.info(f"更新模块: {updated.name}")
        return updated

    def _rename_module_references(self, old_name: str, new_name: str) -> None:
        now = self.clock()
        renamed = 0
        for index, tc in enumerate(self.test_cases):
            if tc.module == old_name:
                self.test_cases[index] = tc.model_copy(update={
                    "module": new_name,
                    "updated_at": next_timestamp(now, tc.updated_at)
                })
                renamed += 1
        if renamed:
            self._save_test_cases()
            logger.info(f"模块重命名: {old_name} -> {new_name}, 同步 {renamed} 个用例")

    def delete_module(self, id: str) -> bool:
        """删除模块，并级联删除 module 字段等于该模块名称的全部用例"""
        module = self.get_module(id)
        if module is None:
            return False

        # 先记录名称，再移除模块
        name = module.name
        self.modules = [m for m in self.modules if m.id != id]
        self._save_modules()

        before = len(self.test_cases)
        self.test_cases = [tc for tc in self.test_cases if tc.module != name]
        removed = before - len(self.test_cases)
        if removed:
            self._save_test_cases()
        logger.info(f"删除模块: {name}, 级联删除 {removed} 个用例")
        return True

    # ------------------------------------------------------------------
    # 批量导入
    # ------------------------------------------------------------------

    def import_test_cases(self, records: Iterable[Dict[str, Any]]) -> ImportResult:
        """批量导入用例

        缺少业务编号、标题或模块的记录计入 skipped；
        业务编号已存在（包括同一批次中先前已导入的）计入 duplicates；
        其余记录全部导入。单条记录要么导入要么跳过，不影响同批其他记录。

        Args:
            records: 候选记录，字段名使用驼峰（testCaseId、expectedResult 等）

        Returns:
            ImportResult: added / skipped / duplicates 计数
        """
        result = ImportResult()
        seen = {tc.test_case_id for tc in self.test_cases}
        now = self.clock()

        for record in records:
            test_case_id = _text(record.get("testCaseId"))
            title = _text(record.get("title"))
            module = _text(record.get("module"))

            if not test_case_id or not title or not module:
                result.skipped += 1
                continue

            if test_case_id in seen:
                result.duplicates += 1
                continue

            tags = record.get("tags") or []
            if isinstance(tags, str):
                tags = [t.strip() for t in tags.split(",") if t.strip()]

            self.test_cases.append(TestCase(
                id=_new_id(),
                test_case_id=test_case_id,
                title=title,
                module=module,
                precondition=_text(record.get("precondition")),
                steps=_text(record.get("steps")),
                expected_result=_text(record.get("expectedResult")),
                tags=list(tags),
                priority=coerce_choice(Priority, record.get("priority"), Priority.MEDIUM),
                status=coerce_choice(Status, record.get("status"), Status.DRAFT),
                created_by=_text(record.get("createdBy")) or "Unknown",
                created_at=now,
                updated_at=now,
                screenshots=[]
            ))
            seen.add(test_case_id)
            result.added += 1

        if result.added:
            self._save_test_cases()
        logger.info(f"导入完成: 新增 {result.added}, 跳过 {result.skipped}, 重复 {result.duplicates}")
        return result

    # ------------------------------------------------------------------
    # 查询状态与派生视图
    # ------------------------------------------------------------------

    def set_search_term(self, term: Optional[str]) -> None:
        self.search_term = term or ""

    def set_selected_module(self, module: Optional[str]) -> None:
        self.selected_module = module or ALL

    def visible_test_cases(
        self,
        status: str = ALL,
        priority: str = ALL,
        sort: Optional[str] = None,
        direction: str = "asc"
    ) -> List[TestCase]:
        """当前查询状态下可见的用例

        结合共享的搜索词、选中模块与视图内的状态/优先级筛选，可选排序。
        """
        criteria = TestCaseFilter(
            search=self.search_term,
            module=self.selected_module,
            status=status,
            priority=priority
        )
        cases = filter_test_cases(self.test_cases, criteria)
        if sort:
            cases = sort_test_cases(cases, sort, direction)
        return cases
