"""
Actor 分组
假设同一根手指的 link 和 joint 名称首字母相同且唯一，用首字母区分手指
(对 Shadow 手而言分组键为 'f', 'l', 'm', 't' 等)
"""

from typing import Callable, Dict, Iterable, List

KeyFunction = Callable[[str], str]


def first_character(name: str) -> str:
    """默认分组策略：名称首字母"""
    return name[:1]


def classify_actors(names: Iterable[str], key: KeyFunction = first_character) -> Dict[str, bool]:
    """
    计算分组键，按首次出现顺序去重

    Args:
        names: 关节名称列表
        key: 名称 -> 分组键

    Returns:
        分组键 -> True
    """
    actors: Dict[str, bool] = {}
    for name in names:
        group = key(name)
        if group and group not in actors:
            actors[group] = True
    return actors


def actor_members(group: str, link_names: Iterable[str], joint_names: Iterable[str],
                  key: KeyFunction = first_character) -> List[str]:
    """属于某个分组的名称，先 link 后 joint"""
    members = [name for name in link_names if key(name) == group]
    members.extend(name for name in joint_names if key(name) == group)
    return members
