"""
api/sample_questions.py — 인메모리 저장소 시드용 샘플 문제
"""

from practice_exam_cbt.models.exam_model import Question

SAMPLE_SUBJECT_ID = "sample"

SAMPLE_QUESTIONS: list[Question] = [
    Question(
        id="sample-1",
        subject_id=SAMPLE_SUBJECT_ID,
        statement="HTTP 상태 코드 404의 의미는?",
        option_a="요청 성공",
        option_b="권한 없음",
        option_c="리소스를 찾을 수 없음",
        option_d="서버 내부 오류",
        option_e="요청 시간 초과",
        correct_answer="C",
        explanation="404 Not Found는 요청한 리소스가 서버에 없음을 뜻한다.",
    ),
    Question(
        id="sample-2",
        subject_id=SAMPLE_SUBJECT_ID,
        statement="2진수 1010을 10진수로 바꾸면?",
        option_a="8",
        option_b="10",
        option_c="12",
        option_d="5",
        option_e="2",
        correct_answer="B",
        explanation="1×8 + 0×4 + 1×2 + 0×1 = 10",
    ),
    Question(
        id="sample-3",
        subject_id=SAMPLE_SUBJECT_ID,
        statement="다음 중 스택(stack)의 특징은?",
        option_a="선입선출",
        option_b="후입선출",
        option_c="임의 접근",
        option_d="우선순위 순 출력",
        option_e="정렬 유지",
        correct_answer="B",
        explanation="스택은 마지막에 넣은 원소를 먼저 꺼낸다 (LIFO).",
    ),
    Question(
        id="sample-4",
        subject_id=SAMPLE_SUBJECT_ID,
        statement="SQL에서 중복 행을 제거하는 키워드는?",
        option_a="UNIQUE",
        option_b="GROUP",
        option_c="FILTER",
        option_d="DISTINCT",
        option_e="ONLY",
        correct_answer="D",
        explanation="SELECT DISTINCT는 결과에서 중복 행을 제거한다.",
    ),
    Question(
        id="sample-5",
        subject_id=SAMPLE_SUBJECT_ID,
        statement="이진 탐색의 시간 복잡도는?",
        option_a="O(log n)",
        option_b="O(n)",
        option_c="O(n log n)",
        option_d="O(1)",
        option_e="O(n²)",
        correct_answer="A",
        explanation="탐색 범위를 매번 절반으로 줄이므로 O(log n).",
    ),
]
