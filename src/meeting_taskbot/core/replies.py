# src/meeting_taskbot/core/replies.py

"""
User-facing reply texts.

Formatting lives here so the dispatcher only decides *what* to answer.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from ..meeting.extraction import CandidateTask
from ..permissions.permission_models import MANAGER_ROLES, Role
from ..tasks.task_models import Scope, ScopeType, Task, TaskPriority, TaskStats, TaskStatus, completion_rate

RULE = "━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━"

MEETING_STARTED = (
    "📝 會議記錄已開始\n\n"
    "🤫 我將靜默記錄對話內容\n"
    "會議結束後請使用「會議總結」查看任務清單"
)
MEETING_START_DENIED = "❌ 權限不足\n\n只有群組管理員以上可以開始會議記錄"
NO_MEETING_RECORD = "❌ 找不到會議記錄\n\n請先使用「開始會議」啟動會議記錄功能"
NO_TASKS_EXTRACTED = "📋 會議總結完成\n\n未檢測到明確的任務或行動項目\n如有需要，請手動新增任務"
INSUFFICIENT_PERMISSION = "❌ 權限不足"
MANAGER_ONLY = "❌ 權限不足\n\n此功能僅限管理者使用"
SUPER_ADMIN_ONLY = "❌ 權限不足\n\n此功能僅限超級管理員使用"
NO_TASKS = "📝 目前沒有任何任務\n\n💡 使用「開始會議」開啟會議記錄模式\n或直接新增任務內容"
TASK_NUMBER_NOT_FOUND = "❌ 找不到該任務編號\n\n💡 使用「任務」查看所有任務編號"
SYSTEM_BUSY = "😅 系統暫時忙碌中，請稍後再試！"
ROLE_USAGE = "ℹ️ 用法：設定權限 [用戶ID] [角色]\n\n角色：super_admin、dept_manager、group_admin、member"
DEPARTMENT_USAGE = "ℹ️ 用法：設定部門 [用戶ID] [部門]"
BIND_USAGE = "ℹ️ 用法：綁定部門 [部門]"

_PRIORITY_EMOJI = {TaskPriority.HIGH: "🔴", TaskPriority.NORMAL: "🟡", TaskPriority.LOW: "🟢"}
_PRIORITY_LABEL = {TaskPriority.HIGH: "高", TaskPriority.NORMAL: "中", TaskPriority.LOW: "低"}


def _fmt_ts(ts: float, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime(fmt)


def meeting_summary(
    candidates: Sequence[CandidateTask],
    *,
    started_at: float,
    ended_at: float,
) -> str:
    # Whole minutes, halves rounded up.
    duration = int(max(ended_at - started_at, 0.0) / 60 + 0.5)
    lines = [
        f"📋 會議任務總結 ({_fmt_ts(started_at, '%Y-%m-%d %H:%M')}-{_fmt_ts(ended_at, '%H:%M')})",
        RULE,
        "",
    ]
    for i, c in enumerate(candidates, start=1):
        priority = TaskPriority.parse(c.priority)
        lines.append(f"{i}. 📝 {c.content}")
        lines.append(f" 👤 {c.assignee or '待分配'} | {_PRIORITY_EMOJI[priority]} {_PRIORITY_LABEL[priority]}優先級")
        if c.due_date:
            lines.append(f" ⏰ 預計：{c.due_date}")
        lines.append("")
    lines += [
        RULE,
        "✅ 任務已同步給所有群組成員！",
        "👍 請相關人員確認接受任務",
        f"📊 會議時長：{duration} 分鐘",
    ]
    return "\n".join(lines)


def task_list(scope: Scope, tasks: Sequence[Task], *, today: date) -> str:
    if not tasks:
        return NO_TASKS

    title = "群組" if scope.type in (ScopeType.GROUP, ScopeType.ROOM) else "個人"
    lines = [f"📋 {title}任務列表：", ""]
    for i, t in enumerate(tasks, start=1):
        if t.status == TaskStatus.COMPLETED:
            status = "✅"
        elif t.is_overdue(today):
            status = "🔴"
        else:
            status = "⏳"
        lines.append(f"{i}. {status}{_PRIORITY_EMOJI[t.priority]} {t.content}")
        lines.append(f" 👤 {t.assignee_name or t.creator_name or t.creator_id} | 📅 {_fmt_ts(t.created_at, '%Y-%m-%d')}")
        if t.due_date:
            lines.append(f" ⏰ 截止：{t.due_date.isoformat()}")
        lines.append("")
    lines += [
        "💡 管理指令：",
        "• 完成 [編號] - 標記任務完成",
        "• 統計 - 查看任務統計",
    ]
    return "\n".join(lines)


def task_stats(stats: TaskStats) -> str:
    cheer = "表現優秀！" if stats.completion_rate_percent >= 80 else "還需加油！"
    return (
        "📊 任務統計報告：\n\n"
        f"✅ 已完成：{stats.completed} 個\n"
        f"⏳ 進行中：{stats.pending} 個\n"
        f"🔴 逾期：{stats.overdue} 個\n"
        f"🚨 高優先級：{stats.high_priority_pending} 個\n"
        f"📝 總計：{stats.total} 個\n\n"
        f"📈 完成率：{stats.completion_rate_percent}%\n"
        f"🎯 {cheer}"
    )


def task_completed(task: Task, actor_name: str) -> str:
    done_at = _fmt_ts(task.completed_at or task.updated_at, "%Y-%m-%d %H:%M:%S")
    return (
        "🎉 恭喜！任務已完成！\n\n"
        f"✅ \"{task.content}\"\n"
        f"👤 完成者：{actor_name}\n"
        f"⏰ 完成時間：{done_at}\n\n"
        "🏆 又朝目標邁進了一步！"
    )


def task_already_completed(content: str) -> str:
    return f"ℹ️ 這個任務已經完成了！\n\n\"{content}\""


def cross_scope_report(role: Role, tasks: Sequence[Task], *, today: date, max_overdue: int = 5) -> str:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    overdue = [t for t in tasks if t.is_overdue(today)]
    rate = completion_rate(completed, total)
    label = "全公司" if role == Role.SUPER_ADMIN else "部門"

    lines = [
        f"📊 {label}任務概況 ({today.isoformat()})",
        RULE,
        "",
        "📈 整體統計：",
        f"📝 總任務數：{total} 項",
        f"✅ 已完成：{completed} 項 ({rate}%)",
        f"⏳ 進行中：{total - completed - len(overdue)} 項",
        f"🔴 逾期任務：{len(overdue)} 項",
    ]
    if overdue:
        lines += ["", "🚨 需要關注的逾期任務："]
        for t in overdue[:max_overdue]:
            days = (today - t.due_date).days if t.due_date else 0
            lines.append(f"• {t.content} - 逾期 {days} 天")
    return "\n".join(lines)


def role_assigned(user_id: str, role: Role) -> str:
    return f"✅ 權限設定完成\n\n👤 用戶：{user_id}\n🔐 角色：{role.value}"


def department_assigned(user_id: str, department: str) -> str:
    return f"✅ 部門設定完成\n\n👤 用戶：{user_id}\n🏢 部門：{department}"


def scope_bound(scope: Scope, department: str) -> str:
    return f"✅ 已將此對話綁定至部門\n\n💬 對話：{scope.key}\n🏢 部門：{department}"


def help_text(role: Role) -> str:
    lines = [
        "🤖 企業任務管理機器人",
        "",
        "📝 會議功能：",
        "• 開始會議 - 啟動靜默記錄",
        "• 會議總結 - 提取並分配任務",
        "",
        "📋 任務管理：",
        "• 任務 - 查看任務列表",
        "• 完成 [編號] - 標記完成",
        "• 統計 - 查看統計資料",
        "",
    ]
    if role in MANAGER_ROLES:
        lines += [
            "👑 管理功能：",
            "• 全公司狀態 - 跨群組監控",
            "• 部門狀態 - 部門任務概況",
            "",
        ]
    if role == Role.SUPER_ADMIN:
        lines += [
            "🔐 權限管理：",
            "• 設定權限 [用戶ID] [角色]",
            "• 設定部門 [用戶ID] [部門]",
            "• 綁定部門 [部門] - 將此對話歸屬部門",
            "",
        ]
    lines += [
        "💡 特色功能：",
        "• 🤫 靜默會議記錄",
        "• 🤖 AI 智能任務提取",
        "• 👥 企業級權限管理",
        "• 📊 跨群組任務監控",
    ]
    return "\n".join(lines)


def overdue_notice(task: Task) -> str:
    due = task.due_date.isoformat() if task.due_date else "-"
    return (
        "🔔 任務逾期提醒\n\n"
        f"📝 {task.content}\n"
        f"👤 負責人：{task.assignee_name or task.creator_name or task.creator_id}\n"
        f"⏰ 原定截止：{due}"
    )
