from aiogram.fsm.state import State, StatesGroup


class OrderStatusEdit(StatesGroup):
    waiting_status = State()
