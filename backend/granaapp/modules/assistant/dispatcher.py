import json
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Any, Optional, Callable, Awaitable, List, Tuple

from loguru import logger

from granaapp.core.exceptions import ToolError, FinanceStoreError, StoreUnavailableError
from granaapp.models.assistant import ToolResult
from granaapp.modules.finance.formatters import format_brl, format_date_br, format_percentage, to_decimal, CENT
from granaapp.modules.finance.models import (
    EXPENSE_CATEGORIES, EXPENSE_KEYWORDS, REVENUE_CATEGORIES, REVENUE_KEYWORDS,
    INVESTMENT_TYPES, INVESTMENT_KEYWORDS, PAYMENT_METHOD_KEYWORDS, PAYMENT_METHODS,
    DEFAULT_OVERTIME_PERCENTAGE, UNSPECIFIED_BROKER, RESOURCE_ROUTES, ResourceRoute,
    ExpenseCreate, RevenueCreate, InvestmentCreate, OvertimeCreate, category_label,
)
from granaapp.modules.finance.normalizers import (
    classify, parse_amount, parse_date, parse_datetime, normalize_percentage, clamp_limit,
    utc_today,
)
from granaapp.modules.finance.overtime import calculate_overtime_value
from granaapp.modules.finance.repository import FinanceRepository

ToolAction = Callable[[str, Dict[str, Any], FinanceRepository], Awaitable[ToolResult]]

DETAILS_DEFAULT_LIMIT = 20
DETAILS_MAX_LIMIT = 50


# --- Helpers de argumentos ---

def _text(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _require_amount(args: Dict[str, Any], key: str, error_message: str) -> float:
    amount = parse_amount(args.get(key))
    if amount is None or amount <= 0:
        raise ToolError(error_message)
    return amount


def _date_arg(args: Dict[str, Any], key: str, default: Optional[date] = None) -> date:
    try:
        return parse_date(args.get(key), today=default)
    except ValueError as e:
        raise ToolError(str(e)) from e


def _datetime_arg(args: Dict[str, Any], key: str, now: Optional[datetime] = None) -> datetime:
    try:
        return parse_datetime(args.get(key), now=now)
    except ValueError as e:
        raise ToolError(str(e)) from e


def _resolve_period(args: Dict[str, Any]) -> Tuple[date, date]:
    """Período padrão: do primeiro dia do mês corrente até hoje."""
    today = utc_today()
    start = _date_arg(args, "from", default=today.replace(day=1))
    end = _date_arg(args, "to", default=today)
    if start > end:
        raise ToolError(f"A data inicial ({format_date_br(start)}) é posterior à final ({format_date_br(end)}).")
    return start, end


def _resolve_route(args: Dict[str, Any]) -> ResourceRoute:
    resource = (_text(args, "resource") or "").lower()
    route = RESOURCE_ROUTES.get(resource)
    if route is None:
        raise ToolError(f"Tipo de registro desconhecido: {resource or '(vazio)'}. Use expenses, revenues, investments ou overtime.")
    return route


def _category_filter(route: ResourceRoute, args: Dict[str, Any]) -> Dict[str, Any]:
    raw = _text(args, "category")
    if not raw or not route.category_field or not route.keywords:
        return {}
    return {route.category_field: classify(raw, route.keywords, route.canonical)}


def _sum_rows(rows: List[Dict[str, Any]], field: str) -> float:
    total = sum((to_decimal(row.get(field)) for row in rows if row.get(field) is not None), Decimal("0"))
    return float(total.quantize(CENT))


def _count_label(count: int, route: ResourceRoute) -> str:
    return f"{count} {route.label_singular if count == 1 else route.label_plural}"


def _align_timezones(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    if (start.tzinfo is None) != (end.tzinfo is None):
        tz = start.tzinfo or end.tzinfo
        start, end = start.replace(tzinfo=start.tzinfo or tz), end.replace(tzinfo=end.tzinfo or tz)
    return start, end


# --- Ferramentas de criação ---

async def create_expense_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    log = logger.bind(tool="create_expense", user_id=user_id)
    amount = _require_amount(args, "amount", "Não consegui identificar o valor da despesa. Pode informar quanto foi gasto?")
    description = _text(args, "description")
    category = classify(_text(args, "category"), EXPENSE_KEYWORDS, EXPENSE_CATEGORIES, description=description)

    payment_method = _text(args, "payment_method")
    if payment_method:
        payment_method = classify(payment_method, PAYMENT_METHOD_KEYWORDS, PAYMENT_METHODS, default=payment_method.lower())

    expense = ExpenseCreate(
        user_id=user_id,
        value=amount,
        date=_date_arg(args, "date"),
        category=category,
        payment_method=payment_method,
        description=description,
    )
    log.info(f"Creating expense: value={expense.value} category={expense.category} date={expense.date}")
    row = await repo.insert(RESOURCE_ROUTES["expenses"].table, expense.to_row())
    return ToolResult.success(
        type="expense",
        data=row,
        message=f"Despesa de {format_brl(expense.value)} registrada em {category_label(category)} ({format_date_br(expense.date)}).",
    )


async def create_revenue_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    log = logger.bind(tool="create_revenue", user_id=user_id)
    amount = _require_amount(args, "amount", "Não consegui identificar o valor da receita. Pode informar quanto foi recebido?")
    description = _text(args, "description")
    category = classify(_text(args, "category"), REVENUE_KEYWORDS, REVENUE_CATEGORIES, description=description)

    revenue = RevenueCreate(
        user_id=user_id,
        value=amount,
        date=_date_arg(args, "date"),
        category=category,
        description=description,
    )
    log.info(f"Creating revenue: value={revenue.value} category={revenue.category} date={revenue.date}")
    row = await repo.insert(RESOURCE_ROUTES["revenues"].table, revenue.to_row())
    return ToolResult.success(
        type="revenue",
        data=row,
        message=f"Receita de {format_brl(revenue.value)} registrada como {category_label(category)} ({format_date_br(revenue.date)}).",
    )


async def create_investment_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    log = logger.bind(tool="create_investment", user_id=user_id)
    amount = _require_amount(args, "amount", "Não consegui identificar o valor investido. Pode informar o valor do aporte?")
    description = _text(args, "description")
    investment_type = classify(_text(args, "investment_type"), INVESTMENT_KEYWORDS, INVESTMENT_TYPES, description=description)

    investment = InvestmentCreate(
        user_id=user_id,
        value=amount,
        investment_type=investment_type,
        where_invested=_text(args, "where_invested") or UNSPECIFIED_BROKER,
        date=_date_arg(args, "date"),
        description=description,
    )
    log.info(f"Creating investment: value={investment.value} type={investment.investment_type} broker={investment.where_invested}")
    row = await repo.insert(RESOURCE_ROUTES["investments"].table, investment.to_row())
    return ToolResult.success(
        type="investment",
        data=row,
        message=(
            f"Investimento de {format_brl(investment.value)} em {category_label(investment_type)} "
            f"registrado ({investment.where_invested}, {format_date_br(investment.date)})."
        ),
    )


async def create_overtime_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    log = logger.bind(tool="create_overtime", user_id=user_id)
    hourly_rate = parse_amount(args.get("hourly_rate"))
    if hourly_rate is None:
        raise ToolError("Não consegui identificar o valor da sua hora. Pode informar quanto vale a hora normal?")

    percentage = normalize_percentage(args.get("overtime_percentage"), DEFAULT_OVERTIME_PERCENTAGE)
    if percentage is None:
        raise ToolError(f"Percentual de hora extra inválido: {args.get('overtime_percentage')}")

    start_time, end_time = _align_timezones(_datetime_arg(args, "start_time"), _datetime_arg(args, "end_time"))

    total_value = None
    if args.get("total_value") not in (None, ""):
        total_value = parse_amount(args.get("total_value"))
        if total_value is None:
            raise ToolError(f"Valor total inválido: {args.get('total_value')}")
    elif _text(args, "start_time") and _text(args, "end_time"):
        # horários padrão ("agora") não descrevem um turno; sem eles o total fica em aberto
        total_value = calculate_overtime_value(start_time, end_time, hourly_rate, percentage)["total_value"]

    overtime = OvertimeCreate(
        user_id=user_id,
        hourly_rate=hourly_rate,
        overtime_percentage=percentage,
        start_time=start_time,
        end_time=end_time,
        payment_date=_date_arg(args, "payment_date"),
        total_value=total_value,
    )
    log.info(f"Creating overtime: rate={overtime.hourly_rate} pct={overtime.overtime_percentage} total={overtime.total_value}")
    row = await repo.insert(RESOURCE_ROUTES["overtime"].table, overtime.to_row())
    total = f"total de {format_brl(overtime.total_value)}" if overtime.total_value is not None else "total a definir"
    return ToolResult.success(
        type="overtime",
        data=row,
        message=(
            f"Hora extra registrada com adicional de {format_percentage(overtime.overtime_percentage)}: "
            f"{total}, pagamento em {format_date_br(overtime.payment_date)}."
        ),
    )


# --- Ferramentas de consulta ---

async def get_expense_summary_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    log = logger.bind(tool="get_expense_summary", user_id=user_id)
    route = RESOURCE_ROUTES["expenses"]
    start, end = _resolve_period(args)
    filters = _category_filter(route, args)

    rows = await repo.select_range(route.table, user_id, route.date_column, start, end, filters=filters, columns=route.value_field)
    total = _sum_rows(rows, route.value_field)
    count = len(rows)
    category = filters.get("category")
    log.info(f"Expense summary {start} -> {end} category={category}: total={total} count={count}")

    scope = f" em {category_label(category)}" if category else ""
    period = f"entre {format_date_br(start)} e {format_date_br(end)}"
    if count:
        message = f"Você gastou {format_brl(total)}{scope} {period} ({_count_label(count, route)})."
    else:
        message = f"Nenhuma despesa{scope} encontrada {period}."
    return ToolResult.success(
        type="expense_summary",
        data={"total": total, "count": count, "from": start.isoformat(), "to": end.isoformat(), "category": category},
        message=message,
    )


async def get_financial_summary_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    route = _resolve_route(args)
    log = logger.bind(tool="get_financial_summary", user_id=user_id, resource=route.resource)
    start, end = _resolve_period(args)
    filters = _category_filter(route, args)

    rows = await repo.select_range(route.table, user_id, route.date_column, start, end, filters=filters, columns=route.value_field)
    total = _sum_rows(rows, route.value_field)
    count = len(rows)
    category = filters.get(route.category_field) if route.category_field else None
    log.info(f"Summary {start} -> {end} category={category}: total={total} count={count}")

    scope = f" ({category_label(category)})" if category else ""
    message = (
        f"Total de {route.label_plural}{scope} entre {format_date_br(start)} e {format_date_br(end)}: "
        f"{format_brl(total)} em {_count_label(count, route)}."
    )
    return ToolResult.success(
        type=f"{route.resource}_summary",
        data={
            "resource": route.resource, "total": total, "count": count,
            "from": start.isoformat(), "to": end.isoformat(), "category": category,
        },
        message=message,
    )


def _describe_row(route: ResourceRoute, row: Dict[str, Any]) -> str:
    if route.resource == "expenses":
        return row.get("description") or category_label(row.get("category"))
    if route.resource == "revenues":
        return category_label(row.get("category"))
    if route.resource == "investments":
        return row.get("where_invested") or UNSPECIFIED_BROKER
    return f"adicional de {format_percentage(row.get('overtime_percentage'))}"


async def get_financial_details_action(user_id: str, args: Dict[str, Any], repo: FinanceRepository) -> ToolResult:
    route = _resolve_route(args)
    log = logger.bind(tool="get_financial_details", user_id=user_id, resource=route.resource)
    start, end = _resolve_period(args)
    filters = _category_filter(route, args)
    limit = clamp_limit(args.get("limit"), default=DETAILS_DEFAULT_LIMIT, maximum=DETAILS_MAX_LIMIT)

    rows = await repo.select_range(route.table, user_id, route.date_column, start, end, filters=filters, limit=limit)
    rows = rows[:limit]
    log.info(f"Details {start} -> {end} limit={limit}: {len(rows)} rows")

    period = f"entre {format_date_br(start)} e {format_date_br(end)}"
    if not rows:
        message = f"Nenhum registro de {route.label_plural} encontrado {period}."
    else:
        lines = [
            f"• {format_date_br(row.get(route.date_column))} - {format_brl(row.get(route.value_field))} - {_describe_row(route, row)}"
            for row in rows
        ]
        message = f"{_count_label(len(rows), route)} {period}, mais recentes primeiro:\n" + "\n".join(lines)
    return ToolResult.success(
        type=f"{route.resource}_details",
        data={"resource": route.resource, "limit": limit, "count": len(rows), "items": rows},
        message=message,
    )


TOOL_ACTION_MAP: Dict[str, ToolAction] = {
    "create_expense": create_expense_action,
    "create_revenue": create_revenue_action,
    "create_investment": create_investment_action,
    "create_overtime": create_overtime_action,
    "get_expense_summary": get_expense_summary_action,
    "get_financial_summary": get_financial_summary_action,
    "get_financial_details": get_financial_details_action,
}


def parse_tool_arguments(raw_arguments: Any) -> Dict[str, Any]:
    if isinstance(raw_arguments, dict):
        return raw_arguments
    if raw_arguments is None or not str(raw_arguments).strip():
        return {}
    parsed = json.loads(raw_arguments)
    if not isinstance(parsed, dict):
        raise ValueError("Tool arguments must be a JSON object.")
    return parsed


async def dispatch_tool_call(
    name: str,
    raw_arguments: Any,
    user_id: str,
    repo: FinanceRepository,
    action_map: Optional[Dict[str, ToolAction]] = None,
) -> ToolResult:
    """Executa a ferramenta pedida pelo LLM e devolve sempre um ToolResult.

    Único ponto onde exceções de ferramenta viram envelope `ok=False`.
    Falta de configuração do banco (StoreUnavailableError) propaga.
    """
    log = logger.bind(tool=name, user_id=user_id)
    action = (TOOL_ACTION_MAP if action_map is None else action_map).get(name)
    if action is None:
        log.warning(f"Tool '{name}' requested but not registered.")
        return ToolResult.failure(f"{name} not implemented")

    try:
        args = parse_tool_arguments(raw_arguments)
    except ValueError as e:
        log.warning(f"Invalid tool arguments: {raw_arguments!r} ({e})")
        return ToolResult.failure(f"Não consegui entender os dados enviados para {name}.")

    log.debug(f"Executing tool with args: {args}")
    try:
        return await action(user_id, args, repo)
    except ToolError as e:
        log.info(f"Tool validation failed: {e.message}")
        return ToolResult.failure(e.message)
    except FinanceStoreError as e:
        log.warning(f"Store error during tool execution: {e.message}")
        return ToolResult.failure(e.message)
    except StoreUnavailableError:
        raise
    except Exception as e:
        log.exception(f"Unexpected error during tool '{name}'")
        return ToolResult.failure(str(e) or f"Falha ao executar {name}.")
