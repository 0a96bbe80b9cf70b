"""Static lookup tables for the organization migration.

Keyword tables are ordered: lookups scan them linearly and the first
matching keyword wins.
"""

from __future__ import annotations

# Source column labels
COL_NAME = "常用名称"
COL_CODE = "机构信用代码"
COL_ENTITY_TYPE = "实体类型"
COL_REGISTRATION_COUNTRY = "注册国籍"
COL_ESTABLISHED = "成立时间"
COL_DESCRIPTION = "机构／项目简介"
COL_STAFF_COUNT = "机构／项目全职人数"
COL_REGISTERED_PLACE = "注册地"
COL_STREET = "具体地址"
COL_WEBSITE = "机构官网"
COL_WECHAT = "机构微信公众号"
COL_WEIBO = "机构微博"
COL_REGISTERING_AUTHORITY = "登记管理机关"
COL_PRINCIPAL = "负责人"
COL_CONTACT_NAME = "机构联系人联系人姓名"
COL_CONTACT_PHONE = "机构联系人联系人电话"
COL_CONTACT_EMAIL = "机构联系人联系人邮箱"
COL_SERVES_ALL = "关于人群类服务对象服务全部人群"
# The leading space is part of the header in the source workbook.
COL_INDUSTRY_TARGETS = " 关于行业类服务对象"

# English column aliases accepted when the Chinese column is absent
COLUMN_ALIASES: dict[str, str] = {
    COL_NAME: "name",
    COL_CODE: "code",
    COL_ENTITY_TYPE: "entityType",
    COL_REGISTRATION_COUNTRY: "registrationCountry",
    COL_ESTABLISHED: "establishedDate",
    COL_DESCRIPTION: "description",
    COL_STAFF_COUNT: "staffCount",
    COL_STREET: "street",
    COL_WEBSITE: "website",
}

ENTITY_TYPE_KEYWORDS: list[tuple[str, str]] = [
    ("基金会", "foundation"),
    ("社会服务机构（民非/NGO）", "ngo"),
    ("民办非企业单位", "ngo"),
    ("社会团体", "association"),
    ("企业", "company"),
    ("政府机构", "government"),
    ("学校", "school"),
]

SERVICE_CATEGORY_MAPPING: dict[str, str] = {
    "学前教育": "early_education",
    "小学教育": "primary_education",
    "中学教育": "secondary_education",
    "高等教育": "higher_education",
    "职业教育": "vocational_education",
    "继续教育": "continuing_education",
    "特殊教育": "special_education",
    "社区教育": "community_education",
    "政策研究": "policy_research",
    "教师发展": "teacher_development",
    "教育内容": "educational_content",
    "教育硬件": "educational_hardware",
    "学生支持": "student_support",
    "扫盲项目": "literacy_programs",
    "组织支持": "organization_support",
    "其他": "other",
}

# Hints matched against the *column label* of an education field
EDUCATION_FIELD_CATEGORY_HINTS: list[tuple[str, str]] = [
    ("早教", "early_education"),
    ("义务教育", "primary_education"),
    ("高等教育", "higher_education"),
    ("特殊教育", "special_education"),
    ("支教", "teacher_development"),
    ("助学", "student_support"),
    ("技术支持", "educational_hardware"),
]

EDUCATION_FIELDS: tuple[str, ...] = (
    "关于人群类服务对象早教",
    "关于人群类服务对象义务教育",
    "关于人群类服务对象高等教育",
    "关于人群类服务对象 对服务人群的支持方向",
    "教育专业／行业／平台发展与技术支持",
    "特殊教育",
    "支教",
    "助学",
    "成长多样化需求",
)

TARGET_GROUP_FIELDS: tuple[str, ...] = (
    "关于人群类服务对象早教",
    "关于人群类服务对象义务教育",
    "关于人群类服务对象高等教育",
    "关于人群类服务对象 对服务人群的支持方向",
)

QUALIFICATION_INDICATORS: tuple[str, ...] = (
    "免税资格",
    "税前扣除资格",
    "公开募捐资格",
    "公益性捐赠税前扣除资格",
    "慈善组织认定",
    "社会组织评估等级",
)

QUALIFICATION_TYPE_HINTS: list[tuple[str, str]] = [
    ("免税", "tax_deduction_eligible"),
    ("税前扣除", "tax_deduction_eligible"),
    ("公开募捐", "public_fundraising_qualified"),
    ("慈善组织", "tax_exempt_qualified"),
]

COVERAGE_KEYWORDS: tuple[str, ...] = (
    "全国",
    "北京",
    "上海",
    "天津",
    "广东",
    "浙江",
    "江苏",
    "山东",
    "河南",
    "湖北",
    "湖南",
    "四川",
    "重庆",
    "陕西",
    "甘肃",
    "青海",
    "西藏",
    "新疆",
    "内蒙古",
    "黑龙江",
    "吉林",
    "辽宁",
    "河北",
    "山西",
    "安徽",
    "江西",
    "福建",
    "台湾",
    "海南",
    "广西",
    "云南",
    "贵州",
    "宁夏",
)

DEFAULT_COUNTRY = "中国"
DEFAULT_STAFF_COUNT = 0
DESCRIPTION_MAX_LENGTH = 2000
YES = "是"
TARGET_SEPARATOR = "; "
DEFAULT_ISSUING_AUTHORITY = "相关主管部门"
REGISTRATION_CERTIFICATE = "社会组织登记证书"

# Dates
EXCEL_SERIAL_MIN = 25000
YEAR_MIN = 1900
YEAR_MAX = 2100

# Contact users
USERNAME_MAX_LENGTH = 50
USERNAME_FORBIDDEN_CHARS = "｜（）()【】[]{}\"'`"
PLACEHOLDER_EMAIL_DOMAIN = "system.local"
USERNAME_RETRY_ATTEMPTS = 10

# Audit log files
LOG_DIR = "logs"
FAILED_LOG_PREFIX = "import-failed-"
USER_FAILED_LOG_PREFIX = "user-import-failed-"
SKIPPED_LOG_PREFIX = "import-skipped-"
